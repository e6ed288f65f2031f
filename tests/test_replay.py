import itertools
import logging

import pytest

from lane_race.core.errors import SimulationExhaustedError
from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.engine.race import simulate_race
from lane_race.replay import RaceReplay, TickFrame, verify_settlement
from tests.test_utils import seed_from_int


def test_replay_restarts_from_the_seed():
    replay = RaceReplay(seed_from_int(2), [4, 4, 8, 8])

    assert replay.frames() == replay.frames()


def test_replay_is_lazy():
    replay = RaceReplay(seed_from_int(2), [4, 4, 8, 8])
    head = list(itertools.islice(replay, 3))

    assert [f.tick for f in head] == [0, 1, 2]
    assert head[0] == TickFrame(tick=0, distances=(0, 0, 0, 0), finished=False)
    assert not any(f.finished for f in head)


def test_only_the_last_frame_is_finished():
    frames = RaceReplay(seed_from_int(4), [10, 1, 1, 1]).frames()

    assert frames[-1].finished
    assert not any(f.finished for f in frames[:-1])
    assert max(frames[-1].distances) >= CLASSIC_RULES.track_length


def test_winner_and_ticks_without_iterating():
    seed = seed_from_int(6)
    settled = simulate_race(seed, [2, 5, 7, 9])
    replay = RaceReplay(seed, [2, 5, 7, 9])

    assert replay.ticks == settled.ticks
    assert replay.winner == settled.winner


def test_verify_settlement_match(caplog):
    seed = seed_from_int(8)
    settled = simulate_race(seed, [6, 6, 6, 6])

    with caplog.at_level(logging.WARNING):
        check = verify_settlement(seed, [6, 6, 6, 6], settled.winner)

    assert check.matches
    assert check.ticks == settled.ticks
    assert "MISMATCH" not in caplog.text


def test_verify_settlement_mismatch_is_reported(caplog):
    seed = seed_from_int(8)
    settled = simulate_race(seed, [6, 6, 6, 6])
    wrong = (settled.winner + 1) % 4

    with caplog.at_level(logging.WARNING):
        check = verify_settlement(seed, [6, 6, 6, 6], wrong)

    assert not check.matches
    assert check.settled_winner == wrong
    assert check.replayed_winner == settled.winner
    assert "MISMATCH" in caplog.text


def test_wrong_score_count():
    with pytest.raises(ValueError):
        RaceReplay(seed_from_int(0), [1, 2])


def test_exhaustion_raises_while_iterating():
    replay = RaceReplay(seed_from_int(0), [1, 1, 1, 1], RaceRules(max_ticks=2))

    with pytest.raises(SimulationExhaustedError):
        replay.frames()
    with pytest.raises(SimulationExhaustedError):
        _ = replay.winner
