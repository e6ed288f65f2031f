"""On-disk layout of a built table: one binary file per shard plus a manifest."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import msgspec

from lane_race.core.errors import TableFormatError
from lane_race.core.rules import RaceRules
from lane_race.simulation.table import (
    DEFAULT_MAX_SHARD_BYTES,
    ProbabilityTable,
    TableRouter,
    TableShard,
)

logger = logging.getLogger("lane_race.artifacts")

TABLE_FORMAT_VERSION = 1
MANIFEST_NAME = "manifest.json"


class ShardInfo(msgspec.Struct, frozen=True):
    shard_id: int
    file: str
    start: int
    count: int
    sha256: str


class TableManifest(msgspec.Struct, frozen=True, kw_only=True):
    version: int = TABLE_FORMAT_VERSION
    rules: RaceRules
    trials: int
    normalized: bool
    entry_width: int
    total_entries: int
    shard_capacity: int
    shards: list[ShardInfo]


def shard_file_name(shard_id: int) -> str:
    return f"shard_{shard_id:03d}.bin"


def write_table(
    table: ProbabilityTable,
    directory: str | Path,
    *,
    rules: RaceRules,
    trials: int,
    normalized: bool,
    max_shard_bytes: int = DEFAULT_MAX_SHARD_BYTES,
) -> TableManifest:
    """Write every shard, then the manifest last so a partial write is obvious."""
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)

    infos: list[ShardInfo] = []
    for shard in table.split(max_shard_bytes):
        name = shard_file_name(shard.shard_id)
        (out / name).write_bytes(shard.data)
        infos.append(
            ShardInfo(
                shard_id=shard.shard_id,
                file=name,
                start=shard.start,
                count=len(shard),
                sha256=hashlib.sha256(shard.data).hexdigest(),
            ),
        )

    manifest = TableManifest(
        rules=rules,
        trials=trials,
        normalized=normalized,
        entry_width=table.entry_width,
        total_entries=len(table),
        shard_capacity=table.shard_capacity(max_shard_bytes),
        shards=infos,
    )
    (out / MANIFEST_NAME).write_bytes(msgspec.json.format(msgspec.json.encode(manifest)))
    logger.info("Wrote %d shards (%d entries) to %s", len(infos), len(table), out)
    return manifest


def load_manifest(directory: str | Path) -> TableManifest:
    path = Path(directory) / MANIFEST_NAME
    try:
        manifest = msgspec.json.decode(path.read_bytes(), type=TableManifest)
    except msgspec.ValidationError as e:
        raise TableFormatError(f"invalid manifest {path}: {e}") from e
    if manifest.version != TABLE_FORMAT_VERSION:
        raise TableFormatError(
            f"unsupported table format {manifest.version}, expected {TABLE_FORMAT_VERSION}",
        )
    return manifest


def load_router(directory: str | Path) -> tuple[TableManifest, TableRouter]:
    """Load and verify every shard listed in a manifest."""
    root = Path(directory)
    manifest = load_manifest(root)
    lane_count = manifest.rules.lane_count

    shards: list[TableShard] = []
    for info in manifest.shards:
        data = (root / info.file).read_bytes()
        digest = hashlib.sha256(data).hexdigest()
        if digest != info.sha256:
            raise TableFormatError(
                f"{info.file}: sha256 {digest} does not match manifest {info.sha256}",
            )
        shard = TableShard(
            shard_id=info.shard_id,
            start=info.start,
            data=data,
            lane_count=lane_count,
        )
        if len(shard) != info.count or len(data) % manifest.entry_width:
            raise TableFormatError(f"{info.file}: expected {info.count} entries")
        shards.append(shard)

    router = TableRouter(
        shards,
        manifest.shard_capacity,
        lane_count,
        manifest.rules.max_score,
    )
    return manifest, router
