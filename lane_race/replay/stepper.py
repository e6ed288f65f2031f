"""
Replay runtime: an independent re-implementation of the race tick loop.

Settlement (``lane_race.engine.race``) and replay must never disagree, but
replay does not call into settlement. Both are held to the same behaviour by
the shared conformance tests instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from lane_race.core.errors import SimulationExhaustedError
from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.core.types import BPS_SCALE, Distances, SeedLike
from lane_race.engine.dice import SeededDice, coerce_seed
from lane_race.engine.handicap import lane_handicaps

logger = logging.getLogger("lane_race.replay")


@dataclass(frozen=True, slots=True)
class TickFrame:
    tick: int
    distances: Distances
    finished: bool


@dataclass(frozen=True, slots=True)
class ReplayVerification:
    settled_winner: int
    replayed_winner: int
    ticks: int

    @property
    def matches(self) -> bool:
        return self.settled_winner == self.replayed_winner


class RaceReplay:
    """
    Lazy, restartable frame sequence for one race.

    Every iteration starts from a fresh dice, so a renderer can rewind simply
    by iterating again. The winner is known once the final frame is produced.
    """

    def __init__(
        self,
        seed: SeedLike,
        scores: Sequence[float],
        rules: RaceRules = CLASSIC_RULES,
    ) -> None:
        if len(scores) != rules.lane_count:
            raise ValueError(f"expected {rules.lane_count} scores, got {len(scores)}")
        self.seed = coerce_seed(seed)
        self.scores = tuple(scores)
        self.rules = rules
        self._handicaps = lane_handicaps(scores, rules.min_bps, rules.max_score)
        self._winner: int | None = None
        self._ticks: int | None = None

    def __iter__(self) -> Iterator[TickFrame]:
        return self._play()

    def _play(self) -> Iterator[TickFrame]:
        rules = self.rules
        dice = SeededDice(self.seed)
        positions = [0] * rules.lane_count
        yield TickFrame(tick=0, distances=tuple(positions), finished=False)

        for tick in range(1, rules.max_ticks + 1):
            for lane, bps in enumerate(self._handicaps):
                whole, frac = divmod((dice.roll(rules.speed_range) + 1) * bps, BPS_SCALE)
                if frac and dice.roll(BPS_SCALE) < frac:
                    whole += 1
                positions[lane] += whole if whole > 0 else 1

            finished = max(positions) >= rules.track_length
            yield TickFrame(tick=tick, distances=tuple(positions), finished=finished)
            if finished:
                self._ticks = tick
                self._winner = self._photo_finish(dice, positions)
                return

        raise SimulationExhaustedError(
            f"replay: no lane reached {rules.track_length} within {rules.max_ticks} ticks",
        )

    @staticmethod
    def _photo_finish(dice: SeededDice, positions: list[int]) -> int:
        best = max(positions)
        tied = [lane for lane, d in enumerate(positions) if d == best]
        if len(tied) > 1:
            return tied[dice.roll(len(tied))]
        return tied[0]

    def _play_through(self) -> None:
        for _ in self:
            pass

    @property
    def winner(self) -> int:
        if self._winner is None:
            self._play_through()
        assert self._winner is not None
        return self._winner

    @property
    def ticks(self) -> int:
        if self._ticks is None:
            self._play_through()
        assert self._ticks is not None
        return self._ticks

    def frames(self) -> list[TickFrame]:
        return list(self)


def verify_settlement(
    seed: SeedLike,
    scores: Sequence[float],
    settled_winner: int,
    rules: RaceRules = CLASSIC_RULES,
) -> ReplayVerification:
    """Replay a settled race and report both winners.

    A mismatch is an integrity failure to surface, not an exception.
    """
    replay = RaceReplay(seed, scores, rules)
    result = ReplayVerification(
        settled_winner=settled_winner,
        replayed_winner=replay.winner,
        ticks=replay.ticks,
    )
    if not result.matches:
        logger.warning(
            "MISMATCH: settled winner Lane %d, replay winner Lane %d (seed 0x%s)",
            settled_winner,
            result.replayed_winner,
            replay.seed.hex(),
        )
    return result
