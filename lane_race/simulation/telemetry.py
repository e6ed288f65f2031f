from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lane_race.core.types import BPS_SCALE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from lane_race.engine.race import FinishGroup

WIN_SPOTS = 1
PLACE_SPOTS = 2
SHOW_SPOTS = 3


def split_credits(
    credits: list[float],
    finish_order: Sequence[FinishGroup],
    spots: int,
) -> None:
    """
    Award ``spots`` paying positions with dead-heat rules.

    A group that fits in the remaining spots gets full credit per lane. A group
    tied for the last qualifying position shares the remaining spots equally.
    """
    used = 0
    for group in finish_order:
        remaining = spots - used
        if remaining <= 0:
            break
        size = len(group.lanes)
        share = 1.0 if size <= remaining else remaining / size
        for lane in group.lanes:
            credits[lane] += share
        used += min(size, remaining)


@dataclass(slots=True)
class WinTally:
    """Win counts per lane across many trial races."""

    lane_count: int
    races: int = 0
    wins: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.wins:
            self.wins = [0] * self.lane_count

    def on_winner(self, lane: int) -> None:
        self.wins[lane] += 1
        self.races += 1


@dataclass(slots=True)
class PodiumTally:
    """Accumulates win/place/show credits from full-race finish orders."""

    lane_count: int
    races: int = 0
    win_credits: list[float] = field(default_factory=list)
    place_credits: list[float] = field(default_factory=list)
    show_credits: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        for name in ("win_credits", "place_credits", "show_credits"):
            if not getattr(self, name):
                setattr(self, name, [0.0] * self.lane_count)

    def on_finish(self, finish_order: Sequence[FinishGroup]) -> None:
        split_credits(self.win_credits, finish_order, WIN_SPOTS)
        split_credits(self.place_credits, finish_order, PLACE_SPOTS)
        split_credits(self.show_credits, finish_order, SHOW_SPOTS)
        self.races += 1

    def _to_bps(self, credits: list[float]) -> tuple[int, ...]:
        if self.races == 0:
            return tuple(0 for _ in credits)
        return tuple(round(c * BPS_SCALE / self.races) for c in credits)

    @property
    def win_bps(self) -> tuple[int, ...]:
        return self._to_bps(self.win_credits)

    @property
    def place_bps(self) -> tuple[int, ...]:
        return self._to_bps(self.place_credits)

    @property
    def show_bps(self) -> tuple[int, ...]:
        return self._to_bps(self.show_credits)
