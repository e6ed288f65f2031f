"""Command-line interface for races, estimates and table builds."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import cappa
import msgspec

from lane_race.core.errors import LaneRaceError
from lane_race.core.rules import RULE_PRESETS, RaceRules
from lane_race.core.types import PresetName
from lane_race.engine.logging import configure_logging
from lane_race.engine.race import simulate_race
from lane_race.replay import verify_settlement
from lane_race.simulation.artifacts import load_router
from lane_race.simulation.builder import TableBuilder, default_worker_count
from lane_race.simulation.config import TableBuildConfig
from lane_race.simulation.estimator import estimate_podium


def parse_scores(raw: str) -> list[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ValueError(f"scores must be comma-separated integers, got {raw!r}") from e


def pct(bps: int) -> str:
    return f"{bps / 100:6.2f}%"


def with_overrides(config: TableBuildConfig, changes: dict[str, object]) -> TableBuildConfig:
    # Rebuilt rather than structs.replace so __post_init__ validates the overrides.
    return TableBuildConfig(**{**msgspec.structs.asdict(config), **changes})


@cappa.command(name="build-table")
@dataclass
class BuildTable:
    """Build the win-probability table and write its shards."""

    config: Annotated[Path | None, cappa.Arg(long=True)] = None
    """Path to TOML build configuration"""

    preset: Annotated[PresetName | None, cappa.Arg(long=True)] = None
    """Override: rules preset (classic or six_lane)"""

    trials: Annotated[int | None, cappa.Arg(long=True)] = None
    """Override: Monte Carlo trials per sorted tuple"""

    workers: Annotated[int | None, cappa.Arg(long=True)] = None
    """Override: worker processes"""

    output: Annotated[Path | None, cappa.Arg(long=True)] = None
    """Override: directory for shards and manifest"""

    checkpoint: Annotated[Path | None, cappa.Arg(long=True)] = None
    """Override: checkpoint file path"""

    max_shard_bytes: Annotated[int | None, cappa.Arg(long=True)] = None
    """Override: maximum bytes per shard artifact"""

    resume: Annotated[bool, cappa.Arg(long=True)] = False
    """Resume from the checkpoint if present"""

    quiet: Annotated[bool, cappa.Arg(long=True)] = False
    """Hide the progress bar"""

    def load_config(self) -> TableBuildConfig:
        if self.config is not None:
            if not self.config.exists():
                raise FileNotFoundError(f"Config file not found: {self.config}")
            config = TableBuildConfig.from_toml(self.config)
        else:
            config = TableBuildConfig()

        # CLI overrides
        overrides: dict[str, object] = {
            "preset": self.preset,
            "trials": self.trials,
            "workers": self.workers,
            "output_dir": str(self.output) if self.output else None,
            "checkpoint": str(self.checkpoint) if self.checkpoint else None,
            "max_shard_bytes": self.max_shard_bytes,
        }
        changes = {k: v for k, v in overrides.items() if v is not None}
        if self.preset is not None:
            # An explicit preset beats rules inherited from the file.
            changes["rules"] = None
        return with_overrides(config, changes)

    def __call__(self) -> int:
        configure_logging()
        try:
            config = self.load_config()
            rules = config.resolve_rules()
            builder = TableBuilder(
                rules=rules,
                trials=config.trials,
                workers=config.workers or default_worker_count(),
                normalize_sums=config.normalize_sums,
                checkpoint_path=Path(config.checkpoint) if config.checkpoint else None,
                show_progress=not self.quiet,
            )
            manifest = builder.build_and_write(
                config.output_dir,
                max_shard_bytes=config.max_shard_bytes,
                resume=self.resume,
            )
        except (LaneRaceError, ValueError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Lanes: {rules.lane_count} | min_bps: {rules.min_bps} | trials: {config.trials}")
        print(f"Entries: {manifest.total_entries} in {len(manifest.shards)} shard(s)")
        print(f"Output: {config.output_dir}")
        return 0


@cappa.command(name="simulate")
@dataclass
class Simulate:
    """Run one race from its seed and print the outcome."""

    seed: Annotated[str, cappa.Arg(long=True)]
    """256-bit seed as 64 hex digits (0x prefix optional)"""

    scores: Annotated[str, cappa.Arg(long=True)]
    """Comma-separated effective scores, one per lane"""

    preset: Annotated[PresetName, cappa.Arg(long=True)] = "classic"
    """Rules preset"""

    rules: Annotated[Path | None, cappa.Arg(long=True)] = None
    """TOML rules file (overrides --preset)"""

    frames: Annotated[bool, cappa.Arg(long=True)] = False
    """Print the distance snapshot of every tick"""

    verify_winner: Annotated[int | None, cappa.Arg(long=True)] = None
    """Settled winner to check against an independent replay"""

    def __call__(self) -> int:
        configure_logging()
        try:
            rules = load_rules(self.preset, self.rules)
            lineup = parse_scores(self.scores)
            result = simulate_race(self.seed, lineup, rules)
        except (LaneRaceError, ValueError, TypeError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if self.frames:
            for tick, distances in enumerate(result.frames):
                print(f"{tick:4d}  {' '.join(f'{d:5d}' for d in distances)}")

        print(f"Winner: Lane {result.winner} after {result.ticks} ticks")
        print(f"Distances: {list(result.distances)}")
        if result.dead_heat:
            print(f"Dead heat between lanes {list(result.leaders)}")

        if self.verify_winner is not None:
            check = verify_settlement(self.seed, lineup, self.verify_winner, rules)
            status = "MATCH" if check.matches else "MISMATCH"
            print(
                f"Verification: {status} (settled {check.settled_winner}, "
                f"replayed {check.replayed_winner})",
            )
            return 0 if check.matches else 2
        return 0


@cappa.command(name="estimate")
@dataclass
class Estimate:
    """Estimate win/place/show probabilities for one lineup."""

    scores: Annotated[str, cappa.Arg(long=True)]
    """Comma-separated effective scores, one per lane"""

    trials: Annotated[int, cappa.Arg(long=True)] = 10_000
    """Monte Carlo trials"""

    preset: Annotated[PresetName, cappa.Arg(long=True)] = "classic"
    """Rules preset"""

    salt: Annotated[int, cappa.Arg(long=True)] = 0
    """Salt mixed into the trial seed stream"""

    def __call__(self) -> int:
        configure_logging()
        try:
            rules = RULE_PRESETS[self.preset]
            estimate = estimate_podium(
                parse_scores(self.scores),
                self.trials,
                rules,
                salt=self.salt,
            )
        except (LaneRaceError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Scores: {list(estimate.scores)} | trials: {estimate.trials}")
        print("Lane  Score      Win    Place     Show")
        for lane, score in enumerate(estimate.scores):
            print(
                f"{lane:4d}  {score:5d}  {pct(estimate.win_bps[lane])} "
                f"{pct(estimate.place_bps[lane])} {pct(estimate.show_bps[lane])}",
            )
        return 0


@cappa.command(name="lookup")
@dataclass
class Lookup:
    """Look up win probabilities for a lineup in a built table."""

    table: Annotated[Path, cappa.Arg(long=True)]
    """Directory holding manifest.json and shards"""

    scores: Annotated[str, cappa.Arg(long=True)]
    """Comma-separated effective scores in lane order"""

    def __call__(self) -> int:
        try:
            _, router = load_router(self.table)
            probs = router.lookup(parse_scores(self.scores))
        except (LaneRaceError, ValueError, FileNotFoundError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        for lane, bps in enumerate(probs):
            print(f"Lane {lane}: {bps:5d} bps ({pct(bps)})")
        return 0


@dataclass
class LaneRace:
    """Deterministic lane-race simulator and probability table tooling."""

    command: cappa.Subcommands[BuildTable | Simulate | Estimate | Lookup]


def load_rules(preset: PresetName, path: Path | None) -> RaceRules:
    if path is not None:
        return RaceRules.from_toml(path)
    return RULE_PRESETS[preset]


def main():
    """Entry point for CLI."""
    return cappa.invoke(LaneRace)


if __name__ == "__main__":
    sys.exit(main())
