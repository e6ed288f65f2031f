"""
Packed probability table, its shards, and the router between them.

Each entry is ``lane_count`` big-endian u16 basis-point values, one per sorted
position. Entries are stored in :mod:`lane_race.simulation.indexer` order.
"""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass

from lane_race.core.errors import TableFormatError
from lane_race.core.types import BPS_SCALE, DEFAULT_MAX_SCORE
from lane_race.simulation.indexer import rank, tuple_count

# 850 four-lane entries per shard.
DEFAULT_MAX_SHARD_BYTES = 6_800


def pack_entry(bps: Sequence[int]) -> bytes:
    for value in bps:
        if not 0 <= value <= BPS_SCALE:
            raise TableFormatError(f"bps value {value} outside [0, {BPS_SCALE}]")
    return struct.pack(f">{len(bps)}H", *bps)


def unpack_entry(data: bytes | memoryview, offset: int, lane_count: int) -> tuple[int, ...]:
    return struct.unpack_from(f">{lane_count}H", data, offset)


def sort_with_permutation(scores: Sequence[int]) -> tuple[tuple[int, ...], list[int]]:
    """Sort scores, returning the sorted tuple and each position's source lane.

    Equal scores keep lane order, so lookups are deterministic.
    """
    order = sorted(range(len(scores)), key=lambda lane: (scores[lane], lane))
    return tuple(scores[lane] for lane in order), order


def unpermute(sorted_values: Sequence[int], order: Sequence[int]) -> tuple[int, ...]:
    by_lane = [0] * len(order)
    for position, lane in enumerate(order):
        by_lane[lane] = sorted_values[position]
    return tuple(by_lane)


class ProbabilityTable:
    """The full, unsharded table held in memory."""

    def __init__(
        self,
        data: bytes,
        lane_count: int,
        max_score: int = DEFAULT_MAX_SCORE,
    ) -> None:
        self.lane_count = lane_count
        self.max_score = max_score
        self.data = bytes(data)
        expected = tuple_count(lane_count, max_score) * self.entry_width
        if len(self.data) != expected:
            raise TableFormatError(
                f"table holds {len(self.data)} bytes, expected {expected} "
                f"for {lane_count} lanes",
            )

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[int]],
        lane_count: int,
        max_score: int = DEFAULT_MAX_SCORE,
    ) -> ProbabilityTable:
        for row in rows:
            if len(row) != lane_count:
                raise TableFormatError(f"row {list(row)} is not {lane_count} wide")
        return cls(b"".join(pack_entry(row) for row in rows), lane_count, max_score)

    @property
    def entry_width(self) -> int:
        return 2 * self.lane_count

    def __len__(self) -> int:
        return len(self.data) // self.entry_width

    def entry(self, index: int) -> tuple[int, ...]:
        if not 0 <= index < len(self):
            raise IndexError(f"table index {index} outside [0, {len(self)})")
        return unpack_entry(self.data, index * self.entry_width, self.lane_count)

    def get_sorted(self, scores: Sequence[int]) -> tuple[int, ...]:
        return self.entry(rank(scores, self.lane_count, self.max_score))

    def lookup(self, scores: Sequence[int]) -> tuple[int, ...]:
        sorted_scores, order = sort_with_permutation(scores)
        return unpermute(self.get_sorted(sorted_scores), order)

    def shard_capacity(self, max_shard_bytes: int) -> int:
        capacity = max_shard_bytes // self.entry_width
        if capacity < 1:
            raise ValueError(
                f"max_shard_bytes={max_shard_bytes} cannot hold one "
                f"{self.entry_width}-byte entry",
            )
        return capacity

    def split(self, max_shard_bytes: int = DEFAULT_MAX_SHARD_BYTES) -> list[TableShard]:
        capacity = self.shard_capacity(max_shard_bytes)
        step = capacity * self.entry_width
        return [
            TableShard(
                shard_id=shard_id,
                start=shard_id * capacity,
                data=self.data[offset : offset + step],
                lane_count=self.lane_count,
            )
            for shard_id, offset in enumerate(range(0, len(self.data), step))
        ]


@dataclass(frozen=True, slots=True)
class TableShard:
    shard_id: int
    start: int
    data: bytes
    lane_count: int

    def __len__(self) -> int:
        return len(self.data) // (2 * self.lane_count)

    @property
    def end(self) -> int:
        return self.start + len(self)

    def entry(self, local_index: int) -> tuple[int, ...]:
        if not 0 <= local_index < len(self):
            raise IndexError(
                f"shard {self.shard_id} local index {local_index} outside [0, {len(self)})",
            )
        return unpack_entry(self.data, local_index * 2 * self.lane_count, self.lane_count)


class TableRouter:
    """Dispatches global indexes to fixed-capacity shards by range arithmetic."""

    def __init__(
        self,
        shards: Sequence[TableShard],
        capacity: int,
        lane_count: int,
        max_score: int = DEFAULT_MAX_SCORE,
    ) -> None:
        self.shards = list(shards)
        self.capacity = capacity
        self.lane_count = lane_count
        self.max_score = max_score
        self.total = tuple_count(lane_count, max_score)
        self._check_layout()

    def _check_layout(self) -> None:
        if self.capacity < 1:
            raise TableFormatError(f"shard capacity must be >= 1, got {self.capacity}")
        covered = 0
        for position, shard in enumerate(self.shards):
            if shard.shard_id != position or shard.start != covered:
                raise TableFormatError(
                    f"shard {shard.shard_id} starts at {shard.start}, expected "
                    f"id {position} at {covered}",
                )
            if shard.lane_count != self.lane_count:
                raise TableFormatError(f"shard {shard.shard_id} has wrong lane count")
            is_last = position == len(self.shards) - 1
            if len(shard) > self.capacity or (not is_last and len(shard) != self.capacity):
                raise TableFormatError(
                    f"shard {shard.shard_id} holds {len(shard)} entries, "
                    f"capacity is {self.capacity}",
                )
            covered = shard.end
        if covered != self.total:
            raise TableFormatError(f"shards cover {covered} entries, expected {self.total}")

    @classmethod
    def from_table(
        cls,
        table: ProbabilityTable,
        max_shard_bytes: int = DEFAULT_MAX_SHARD_BYTES,
    ) -> TableRouter:
        return cls(
            table.split(max_shard_bytes),
            table.shard_capacity(max_shard_bytes),
            table.lane_count,
            table.max_score,
        )

    def locate(self, index: int) -> tuple[int, int]:
        """``(shard_id, local_index)`` owning a global table index."""
        if not 0 <= index < self.total:
            raise IndexError(f"table index {index} outside [0, {self.total})")
        return divmod(index, self.capacity)

    def entry(self, index: int) -> tuple[int, ...]:
        shard_id, local = self.locate(index)
        return self.shards[shard_id].entry(local)

    def get_sorted(self, scores: Sequence[int]) -> tuple[int, ...]:
        return self.entry(rank(scores, self.lane_count, self.max_score))

    def lookup(self, scores: Sequence[int]) -> tuple[int, ...]:
        """Win bps per lane for a lineup given in lane order (unsorted)."""
        sorted_scores, order = sort_with_permutation(scores)
        return unpermute(self.get_sorted(sorted_scores), order)
