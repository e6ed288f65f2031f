from collections.abc import Callable, Sequence
from dataclasses import dataclass

import pytest

from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.engine.race import simulate_race
from lane_race.replay import RaceReplay
from tests.test_utils import RaceScenario


@pytest.fixture
def scenario() -> Callable[..., RaceScenario]:
    """Factory fixture to create scripted-dice scenarios."""

    def _builder(
        scores: Sequence[int],
        rolls: list[int],
        rules: RaceRules = CLASSIC_RULES,
    ) -> RaceScenario:
        return RaceScenario(scores, rolls, rules)

    return _builder


@dataclass(frozen=True)
class RaceOutcome:
    winner: int
    frames: tuple[tuple[int, ...], ...]

    @property
    def ticks(self) -> int:
        return len(self.frames) - 1

    @property
    def distances(self) -> tuple[int, ...]:
        return self.frames[-1]


def _settle(seed, scores, rules) -> RaceOutcome:
    result = simulate_race(seed, scores, rules)
    return RaceOutcome(winner=result.winner, frames=result.frames)


def _replay(seed, scores, rules) -> RaceOutcome:
    replay = RaceReplay(seed, scores, rules)
    frames = tuple(frame.distances for frame in replay)
    return RaceOutcome(winner=replay.winner, frames=frames)


RUNTIMES = {"settlement": _settle, "replay": _replay}


@pytest.fixture(params=sorted(RUNTIMES))
def race_runner(request) -> Callable[[object, Sequence[int], RaceRules], RaceOutcome]:
    """Each runtime that must reproduce a race from its seed."""
    return RUNTIMES[request.param]
