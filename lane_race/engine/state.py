from dataclasses import dataclass

from lane_race.core.types import Distances


@dataclass(slots=True)
class LaneState:
    idx: int
    score: int
    handicap_bps: int
    distance: int = 0

    @property
    def repr(self) -> str:
        return f"Lane {self.idx}"


@dataclass(slots=True)
class RaceState:
    lanes: list[LaneState]
    tick: int = 0

    @property
    def distances(self) -> Distances:
        return tuple(lane.distance for lane in self.lanes)

    def leaders(self) -> list[int]:
        """Lanes sharing the greatest distance, in lane order."""
        best = max(lane.distance for lane in self.lanes)
        return [lane.idx for lane in self.lanes if lane.distance == best]

    def any_past(self, line: int) -> bool:
        return any(lane.distance >= line for lane in self.lanes)

    def all_past(self, line: int) -> bool:
        return all(lane.distance >= line for lane in self.lanes)
