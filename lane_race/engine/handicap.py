import math
from collections.abc import Sequence

from lane_race.core.types import BPS_SCALE, DEFAULT_MAX_SCORE, MIN_SCORE


def clamp_score(score: float, max_score: int = DEFAULT_MAX_SCORE) -> int:
    """Floor a raw effective score and clamp it into ``[1, max_score]``."""
    value = math.floor(score)
    if value < MIN_SCORE:
        return MIN_SCORE
    if value > max_score:
        return max_score
    return value


def handicap_bps(score: float, min_bps: int, max_score: int = DEFAULT_MAX_SCORE) -> int:
    """
    Linear handicap from ``min_bps`` at score 1 up to exactly 10000 at max_score.

    Changing ``min_bps`` invalidates every probability table built before.
    """
    clamped = clamp_score(score, max_score)
    return min_bps + ((clamped - MIN_SCORE) * (BPS_SCALE - min_bps)) // (
        max_score - MIN_SCORE
    )


def lane_handicaps(
    scores: Sequence[float],
    min_bps: int,
    max_score: int = DEFAULT_MAX_SCORE,
) -> list[int]:
    return [handicap_bps(s, min_bps, max_score) for s in scores]
