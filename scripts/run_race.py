from __future__ import annotations  # noqa: INP001

import logging

from lane_race.core.rules import CLASSIC_RULES
from lane_race.engine.logging import configure_logging
from lane_race.engine.race import simulate_race
from lane_race.replay import verify_settlement

if __name__ == "__main__":
    configure_logging(logging.DEBUG)

    seed = bytes(range(32))
    scores = [10, 7, 4, 1]

    result = simulate_race(seed, scores, CLASSIC_RULES)
    check = verify_settlement(seed, scores, result.winner, CLASSIC_RULES)

    print(f"Lane {result.winner} wins after {result.ticks} ticks: {list(result.distances)}")
    print(f"Replay agrees: {check.matches}")
