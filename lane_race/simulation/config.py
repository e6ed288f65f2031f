"""Configuration schema for probability table builds using msgspec."""

from __future__ import annotations

from pathlib import Path
from typing import get_args

import msgspec

from lane_race.core.rules import RULE_PRESETS, RaceRules
from lane_race.core.types import PresetName
from lane_race.simulation.table import DEFAULT_MAX_SHARD_BYTES


class TableBuildConfig(msgspec.Struct, kw_only=True):
    """
    TOML-backed configuration for building the win-probability table.

    ``rules`` overrides ``preset`` when both are given.
    """

    preset: PresetName = "classic"
    rules: RaceRules | None = None

    # Monte Carlo trials per sorted tuple
    trials: int = 50_000

    # None = one less than the CPU count, capped
    workers: int | None = None

    output_dir: str = "build/win-prob-table"
    checkpoint: str | None = "build/win-prob-checkpoint.json"

    max_shard_bytes: int = DEFAULT_MAX_SHARD_BYTES

    # Fold rounding residue into the largest entry so rows sum to 10000
    normalize_sums: bool = True

    def __post_init__(self) -> None:
        if self.preset not in get_args(PresetName):
            raise ValueError(f"unknown preset {self.preset!r}")
        if self.trials <= 0:
            raise ValueError(f"trials must be > 0, got {self.trials}")
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be > 0, got {self.workers}")
        if self.max_shard_bytes <= 0:
            raise ValueError(f"max_shard_bytes must be > 0, got {self.max_shard_bytes}")

    @classmethod
    def from_toml(cls, path: str | Path) -> TableBuildConfig:
        """Load configuration from a TOML file path."""
        with Path(path).open("rb") as f:
            return msgspec.toml.decode(f.read(), type=cls)

    def resolve_rules(self) -> RaceRules:
        if self.rules is not None:
            return self.rules
        return RULE_PRESETS[self.preset]
