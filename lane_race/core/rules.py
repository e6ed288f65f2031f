"""Race parameters shared by settlement, replay and the probability table."""

from __future__ import annotations

import math
from pathlib import Path

import msgspec

from lane_race.core.types import BPS_SCALE, DEFAULT_MAX_SCORE, PresetName


class RaceRules(msgspec.Struct, frozen=True, kw_only=True):
    """
    Every constant the tick loop depends on.

    A probability table is only valid for the exact rules it was built with,
    so the rules are recorded in checkpoints and table manifests.
    """

    lane_count: int = 4
    speed_range: int = 10
    track_length: int = 1000
    max_ticks: int = 500

    # Handicap at score 1; score max_score always maps to BPS_SCALE.
    min_bps: int = 9525

    # Full-race mode keeps running until every lane is this far past the line.
    finish_overshoot: int = 10

    max_score: int = DEFAULT_MAX_SCORE

    def __post_init__(self) -> None:
        if self.lane_count < 1:
            raise ValueError(f"lane_count must be >= 1, got {self.lane_count}")
        if self.speed_range < 1:
            raise ValueError(f"speed_range must be >= 1, got {self.speed_range}")
        if self.track_length < 1:
            raise ValueError(f"track_length must be >= 1, got {self.track_length}")
        if self.max_ticks < 1:
            raise ValueError(f"max_ticks must be >= 1, got {self.max_ticks}")
        if not 0 <= self.min_bps <= BPS_SCALE:
            raise ValueError(f"min_bps must be in [0, {BPS_SCALE}], got {self.min_bps}")
        if self.finish_overshoot < 0:
            raise ValueError(
                f"finish_overshoot must be >= 0, got {self.finish_overshoot}",
            )
        # Scores are packed into 4-bit nibbles when deriving estimator streams.
        if not 2 <= self.max_score <= 15:
            raise ValueError(f"max_score must be in [2, 15], got {self.max_score}")

    @property
    def tuple_count(self) -> int:
        """Number of sorted score tuples (combinations with repetition)."""
        return math.comb(self.max_score + self.lane_count - 1, self.lane_count)

    @property
    def entry_width(self) -> int:
        """Bytes per packed table entry (one big-endian u16 per lane)."""
        return 2 * self.lane_count

    @classmethod
    def from_toml(cls, path: str | Path) -> RaceRules:
        """Load rules from a TOML file path."""
        with Path(path).open("rb") as f:
            return msgspec.toml.decode(f.read(), type=cls)


CLASSIC_RULES = RaceRules()
SIX_LANE_RULES = RaceRules(lane_count=6, min_bps=9585)

RULE_PRESETS: dict[PresetName, RaceRules] = {
    "classic": CLASSIC_RULES,
    "six_lane": SIX_LANE_RULES,
}
