"""
Monte Carlo win probabilities for a lineup of handicapped lanes.

Each sorted tuple owns a SplitMix64 stream derived from its scores, so an
entry is reproducible on its own and independent of every other entry. Trial
race seeds are drawn from that stream, never reused.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.core.types import BPS_SCALE
from lane_race.engine.handicap import clamp_score
from lane_race.engine.race import simulate_full_race, simulate_race
from lane_race.simulation.checkpoint import TableRow
from lane_race.simulation.telemetry import PodiumTally, WinTally

logger = logging.getLogger("lane_race.estimator")

MASK64 = (1 << 64) - 1
SPLITMIX64_GAMMA = 0x9E3779B97F4A7C15


class SplitMix64:
    __slots__ = ("state",)

    def __init__(self, state: int) -> None:
        self.state = state & MASK64

    def next(self) -> int:
        self.state = (self.state + SPLITMIX64_GAMMA) & MASK64
        z = self.state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & MASK64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & MASK64
        return z ^ (z >> 31)

    def next_seed(self) -> bytes:
        """Four outputs concatenated big-endian into a 32-byte race seed."""
        return b"".join(self.next().to_bytes(8, "big") for _ in range(4))


def tuple_key(scores: Sequence[int]) -> int:
    """Pack scores into nibbles, first score in the lowest nibble."""
    key = 0
    for position, score in enumerate(scores):
        key |= (score & 0xF) << (4 * position)
    return key


def tuple_stream(scores: Sequence[int], salt: int = 0) -> SplitMix64:
    return SplitMix64(((tuple_key(scores) * SPLITMIX64_GAMMA) ^ salt) & MASK64)


def wins_to_bps(wins: Sequence[int], trials: int) -> tuple[int, ...]:
    """Round-half-up basis points, clamped so no lane is ever quoted at zero."""
    return tuple(
        max(1, min(BPS_SCALE, (2 * w * BPS_SCALE + trials) // (2 * trials)))
        for w in wins
    )


def correct_bps_sum(bps: Sequence[int]) -> tuple[int, ...]:
    """Fold the rounding residual into the largest entry (first on ties)."""
    residual = BPS_SCALE - sum(bps)
    if residual == 0:
        return tuple(bps)
    largest = max(range(len(bps)), key=lambda i: (bps[i], -i))
    corrected = list(bps)
    corrected[largest] = max(1, corrected[largest] + residual)
    return tuple(corrected)


def count_wins(
    scores: Sequence[int],
    trials: int,
    rules: RaceRules = CLASSIC_RULES,
) -> list[int]:
    if trials <= 0:
        raise ValueError(f"trials must be > 0, got {trials}")
    stream = tuple_stream(scores)
    tally = WinTally(lane_count=rules.lane_count)
    for _ in range(trials):
        result = simulate_race(stream.next_seed(), scores, rules, record_frames=False)
        tally.on_winner(result.winner)
    return tally.wins


def estimate_win_bps(
    scores: Sequence[int],
    trials: int,
    rules: RaceRules = CLASSIC_RULES,
    *,
    normalize: bool = False,
) -> tuple[int, ...]:
    """Estimated win probability per lane, in basis points."""
    bps = wins_to_bps(count_wins(scores, trials, rules), trials)
    return correct_bps_sum(bps) if normalize else bps


def estimate_entry(
    index: int,
    scores: tuple[int, ...],
    trials: int,
    rules: RaceRules,
    normalize: bool,
) -> TableRow:
    """Worker entry point for the table builder."""
    return TableRow(
        index=index,
        scores=scores,
        bps=estimate_win_bps(scores, trials, rules, normalize=normalize),
    )


@dataclass(frozen=True, slots=True)
class PodiumEstimate:
    scores: tuple[int, ...]
    trials: int
    win_bps: tuple[int, ...]
    place_bps: tuple[int, ...]
    show_bps: tuple[int, ...]


def estimate_podium(
    scores: Sequence[float],
    trials: int,
    rules: RaceRules = CLASSIC_RULES,
    *,
    salt: int = 0,
) -> PodiumEstimate:
    """Win/place/show probabilities for a lineup in lane order.

    Races run to completion and dead heats split credit instead of being
    broken by a draw.
    """
    if trials <= 0:
        raise ValueError(f"trials must be > 0, got {trials}")
    clamped = tuple(clamp_score(s, rules.max_score) for s in scores)
    stream = tuple_stream(clamped, salt)
    tally = PodiumTally(lane_count=rules.lane_count)
    for _ in range(trials):
        tally.on_finish(simulate_full_race(stream.next_seed(), clamped, rules).finish_order)

    logger.debug("Podium estimate for %s over %d trials", list(clamped), trials)
    return PodiumEstimate(
        scores=clamped,
        trials=trials,
        win_bps=tally.win_bps,
        place_bps=tally.place_bps,
        show_bps=tally.show_bps,
    )
