"""
Rank and unrank sorted score tuples.

The table holds one entry per non-decreasing tuple over ``[1, max_score]``,
in lexicographic order. The number of non-decreasing sequences of length
``r`` whose values lie in ``[lower, max_score]`` is
``C(max_score - lower + r, r)``, which lets a tuple be ranked position by
position without walking the enumeration.
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterator, Sequence

from lane_race.core.errors import InvalidScoreTupleError
from lane_race.core.types import DEFAULT_MAX_SCORE, MIN_SCORE, Scores


def count_sequences(length: int, lower: int, max_score: int = DEFAULT_MAX_SCORE) -> int:
    return math.comb(max_score - lower + length, length)


def tuple_count(lane_count: int, max_score: int = DEFAULT_MAX_SCORE) -> int:
    return count_sequences(lane_count, MIN_SCORE, max_score)


def iter_sorted_tuples(
    lane_count: int,
    max_score: int = DEFAULT_MAX_SCORE,
) -> Iterator[Scores]:
    """Yield every sorted tuple in table order.

    Same order as nested loops where each position starts at the previous
    position's value.
    """
    return itertools.combinations_with_replacement(
        range(MIN_SCORE, max_score + 1),
        lane_count,
    )


def validate_sorted(
    scores: Sequence[int],
    lane_count: int | None = None,
    max_score: int = DEFAULT_MAX_SCORE,
) -> Scores:
    if lane_count is not None and len(scores) != lane_count:
        raise InvalidScoreTupleError(
            f"expected {lane_count} scores, got {len(scores)}: {list(scores)}",
        )
    if not scores:
        raise InvalidScoreTupleError("score tuple is empty")
    for value in scores:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidScoreTupleError(f"scores must be integers: {list(scores)}")
        if not MIN_SCORE <= value <= max_score:
            raise InvalidScoreTupleError(
                f"score {value} outside [{MIN_SCORE}, {max_score}]: {list(scores)}",
            )
    if any(a > b for a, b in itertools.pairwise(scores)):
        raise InvalidScoreTupleError(f"scores are not sorted: {list(scores)}")
    return tuple(scores)


def rank(
    scores: Sequence[int],
    lane_count: int | None = None,
    max_score: int = DEFAULT_MAX_SCORE,
) -> int:
    """Index of a sorted tuple in the full enumeration."""
    values = validate_sorted(scores, lane_count, max_score)
    index = 0
    lower = MIN_SCORE
    for position, value in enumerate(values):
        remaining = len(values) - position - 1
        for x in range(lower, value):
            index += count_sequences(remaining, x, max_score)
        lower = value
    return index


def unrank(index: int, lane_count: int, max_score: int = DEFAULT_MAX_SCORE) -> Scores:
    """Sorted tuple at ``index``; the inverse of :func:`rank`."""
    total = tuple_count(lane_count, max_score)
    if not 0 <= index < total:
        raise IndexError(f"tuple index {index} outside [0, {total})")

    values: list[int] = []
    lower = MIN_SCORE
    for position in range(lane_count):
        remaining = lane_count - position - 1
        x = lower
        while index >= (block := count_sequences(remaining, x, max_score)):
            index -= block
            x += 1
        values.append(x)
        lower = x
    return tuple(values)
