"""
Parallel table build with in-order checkpointing.

Tuples are dispatched by increasing index to a process pool. Workers finish
out of order; the coordinator buffers their rows and commits them to the
checkpoint strictly in index order, so a restart resumes from
``checkpoint.next_index`` with no gaps to re-validate.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from tqdm import tqdm

from lane_race.core.errors import TableBuildError, TableFormatError
from lane_race.core.rules import RaceRules
from lane_race.simulation.artifacts import TableManifest, write_table
from lane_race.simulation.checkpoint import BuildCheckpoint, TableRow
from lane_race.simulation.estimator import estimate_entry
from lane_race.simulation.indexer import iter_sorted_tuples
from lane_race.simulation.table import DEFAULT_MAX_SHARD_BYTES, ProbabilityTable

logger = logging.getLogger("lane_race.builder")

MAX_WORKERS = 12


def default_worker_count() -> int:
    return max(1, min(MAX_WORKERS, (os.cpu_count() or 1) - 1))


def commit_ready(checkpoint: BuildCheckpoint, buffered: dict[int, TableRow]) -> int:
    """Move the contiguous run of buffered rows into the checkpoint."""
    committed = 0
    while checkpoint.next_index in buffered:
        checkpoint.commit(buffered.pop(checkpoint.next_index))
        committed += 1
    return committed


def table_from_checkpoint(checkpoint: BuildCheckpoint) -> ProbabilityTable:
    rules = checkpoint.rules
    if not checkpoint.complete:
        raise TableFormatError(
            f"checkpoint holds {checkpoint.next_index}/{rules.tuple_count} rows",
        )
    expected = iter_sorted_tuples(rules.lane_count, rules.max_score)
    for row, scores in zip(checkpoint.rows, expected, strict=True):
        if row.scores != scores:
            raise TableFormatError(
                f"row {row.index} holds scores {list(row.scores)}, expected {list(scores)}",
            )
    return ProbabilityTable.from_rows(
        [row.bps for row in checkpoint.rows],
        rules.lane_count,
        rules.max_score,
    )


@dataclass
class TableBuilder:
    rules: RaceRules
    trials: int
    workers: int = field(default_factory=default_worker_count)
    normalize_sums: bool = True
    checkpoint_path: Path | None = None
    show_progress: bool = True

    def __post_init__(self) -> None:
        if self.trials <= 0:
            raise ValueError(f"trials must be > 0, got {self.trials}")
        if self.workers <= 0:
            raise ValueError(f"workers must be > 0, got {self.workers}")

    def start_checkpoint(self, *, resume: bool) -> BuildCheckpoint:
        path = self.checkpoint_path
        if resume and path is not None and path.exists():
            checkpoint = BuildCheckpoint.load(path)
            checkpoint.ensure_compatible(self.trials, self.rules, self.normalize_sums)
            logger.info(
                "Resuming from checkpoint: %d/%d rows",
                checkpoint.next_index,
                self.rules.tuple_count,
            )
            return checkpoint
        return BuildCheckpoint(
            trials=self.trials,
            rules=self.rules,
            normalized=self.normalize_sums,
        )

    def _persist(self, checkpoint: BuildCheckpoint) -> None:
        if self.checkpoint_path is not None:
            checkpoint.save(self.checkpoint_path)

    def run(self, *, resume: bool = False) -> BuildCheckpoint:
        """Estimate every remaining tuple and return the completed checkpoint."""
        checkpoint = self.start_checkpoint(resume=resume)
        total = self.rules.tuple_count
        if checkpoint.complete:
            logger.info("Checkpoint already complete (%d rows)", total)
            return checkpoint

        tuples = list(iter_sorted_tuples(self.rules.lane_count, self.rules.max_score))
        first = checkpoint.next_index
        worker_count = min(self.workers, total - first)
        in_flight_limit = 2 * worker_count

        logger.info(
            "Workers: %d | trials/tuple: %d | tuples: %d (starting at %d)",
            worker_count,
            self.trials,
            total,
            first,
        )

        pending: dict[Future[TableRow], int] = {}
        buffered: dict[int, TableRow] = {}
        next_dispatch = first
        started = time.perf_counter()

        with (
            ProcessPoolExecutor(max_workers=worker_count) as pool,
            tqdm(
                total=total,
                initial=first,
                desc="Estimating",
                unit="tuple",
                disable=not self.show_progress,
            ) as pbar,
        ):

            def dispatch() -> None:
                nonlocal next_dispatch
                while next_dispatch < total and len(pending) < in_flight_limit:
                    future = pool.submit(
                        estimate_entry,
                        next_dispatch,
                        tuples[next_dispatch],
                        self.trials,
                        self.rules,
                        self.normalize_sums,
                    )
                    pending[future] = next_dispatch
                    next_dispatch += 1

            dispatch()
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    index = pending.pop(future)
                    try:
                        buffered[index] = future.result()
                    except Exception as e:
                        pool.shutdown(wait=False, cancel_futures=True)
                        logger.error("Worker failed on index %d: %r", index, e)
                        raise TableBuildError(index, repr(e)) from e

                committed = commit_ready(checkpoint, buffered)
                if committed:
                    self._persist(checkpoint)
                    pbar.update(committed)
                    elapsed = time.perf_counter() - started
                    sims = (checkpoint.next_index - first) * self.trials
                    pbar.set_postfix(sims_per_s=f"{sims / max(elapsed, 1e-9):,.0f}")
                dispatch()

        logger.info(
            "Estimated %d tuples in %.1fs",
            total - first,
            time.perf_counter() - started,
        )
        return checkpoint

    def build_table(self, *, resume: bool = False) -> ProbabilityTable:
        return table_from_checkpoint(self.run(resume=resume))

    def build_and_write(
        self,
        output_dir: str | Path,
        *,
        max_shard_bytes: int = DEFAULT_MAX_SHARD_BYTES,
        resume: bool = False,
    ) -> TableManifest:
        """Build the whole table, then write shards. Nothing is written on failure."""
        table = self.build_table(resume=resume)
        return write_table(
            table,
            output_dir,
            rules=self.rules,
            trials=self.trials,
            normalized=self.normalize_sums,
            max_shard_bytes=max_shard_bytes,
        )
