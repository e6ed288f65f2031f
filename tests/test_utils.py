import hashlib
from collections.abc import Sequence
from dataclasses import dataclass, field

from lane_race.core.rules import RaceRules
from lane_race.engine.race import RaceResult, run_race


def seed_from_int(i: int) -> bytes:
    """Stable, well-mixed 32-byte seed for test case ``i``."""
    return hashlib.sha256(f"lane-race-test-{i}".encode()).digest()


@dataclass
class ScriptedDice:
    """Dice double that replays fixed rolls and records each requested range."""

    rolls: list[int]
    calls: list[int] = field(default_factory=list)

    def roll(self, n: int) -> int:
        if not self.rolls:
            raise AssertionError(f"dice script exhausted at roll({n})")
        value = self.rolls.pop(0)
        if not 0 <= value < n:
            raise AssertionError(f"scripted roll {value} outside [0, {n})")
        self.calls.append(n)
        return value


class RaceScenario:
    """
    A reusable harness that runs the settlement tick loop on scripted dice.
    """

    def __init__(self, scores: Sequence[int], rolls: list[int], rules: RaceRules):
        self.scores = list(scores)
        self.rules = rules
        self.dice = ScriptedDice(list(rolls))

    def run(self) -> RaceResult:
        return run_race(self.dice, self.scores, self.rules)

    @property
    def unused_rolls(self) -> list[int]:
        return self.dice.rolls
