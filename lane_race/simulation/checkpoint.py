"""Resumable state of a table build, owned by the build coordinator."""

from __future__ import annotations

import os
from pathlib import Path

import msgspec

from lane_race.core.errors import CheckpointMismatchError
from lane_race.core.rules import RaceRules

CHECKPOINT_VERSION = 1


class TableRow(msgspec.Struct, frozen=True, array_like=True):
    """One estimated table entry: sorted scores and per-position bps."""

    index: int
    scores: tuple[int, ...]
    bps: tuple[int, ...]


class BuildCheckpoint(msgspec.Struct, kw_only=True):
    """
    Append-only record of committed rows.

    Rows are only ever committed in increasing index order, so ``next_index``
    is both the row count and the first tuple still to estimate.
    """

    trials: int
    rules: RaceRules
    normalized: bool
    version: int = CHECKPOINT_VERSION
    next_index: int = 0
    rows: list[TableRow] = msgspec.field(default_factory=list)

    def __post_init__(self) -> None:
        if self.version != CHECKPOINT_VERSION:
            raise ValueError(
                f"unsupported checkpoint version {self.version}, expected {CHECKPOINT_VERSION}",
            )
        if self.next_index != len(self.rows):
            raise ValueError(
                f"checkpoint next_index={self.next_index} but holds {len(self.rows)} rows",
            )

    @property
    def complete(self) -> bool:
        return self.next_index >= self.rules.tuple_count

    def commit(self, row: TableRow) -> None:
        if row.index != self.next_index:
            raise ValueError(
                f"out-of-order commit: got index {row.index}, expected {self.next_index}",
            )
        self.rows.append(row)
        self.next_index += 1

    def ensure_compatible(self, trials: int, rules: RaceRules, normalized: bool) -> None:
        if self.trials != trials:
            raise CheckpointMismatchError(
                f"checkpoint trials={self.trials} does not match requested trials={trials}",
            )
        if self.rules != rules:
            raise CheckpointMismatchError(
                f"checkpoint rules {self.rules!r} do not match requested {rules!r}",
            )
        if self.normalized != normalized:
            raise CheckpointMismatchError(
                f"checkpoint normalized={self.normalized} does not match {normalized}",
            )

    @classmethod
    def load(cls, path: str | Path) -> BuildCheckpoint:
        return msgspec.json.decode(Path(path).read_bytes(), type=cls)

    def save(self, path: str | Path) -> None:
        """Write atomically so a crash never leaves a truncated checkpoint."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_bytes(msgspec.json.encode(self))
        os.replace(tmp, target)
