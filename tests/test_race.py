import pytest

from lane_race.core.errors import SimulationExhaustedError
from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.engine.race import (
    FinishGroup,
    group_finish_order,
    simulate_full_race,
    simulate_race,
)
from tests.test_utils import seed_from_int

SHORT_TRACK = RaceRules(lane_count=2, track_length=10, max_ticks=5)


def test_remainder_rounds_up_when_pick_is_below_it(scenario):
    # Lane 0 (9525 bps) rolls 10: 95250 -> 9 rem 5250, pick 0 rounds up to 10.
    # Lane 1 (10000 bps) rolls 9: exact, so no rounding draw.
    game = scenario([1, 10], [9, 0, 8], SHORT_TRACK)
    result = game.run()

    assert result.distances == (10, 9)
    assert result.winner == 0
    assert result.ticks == 1
    assert not result.dead_heat
    assert game.dice.calls == [10, 10_000, 10]
    assert game.unused_rolls == []


def test_dead_heat_is_broken_with_one_more_draw(scenario):
    rolls = [
        9, 5250, 8,  # tick 1: pick == remainder, no round-up -> (9, 9)
        0, 9999, 0,  # tick 2: both move 1 -> (10, 10)
        1,  # tie-break picks the second leader
    ]
    game = scenario([1, 10], rolls, SHORT_TRACK)
    result = game.run()

    assert result.frames == ((0, 0), (9, 9), (10, 10))
    assert result.leaders == (0, 1)
    assert result.dead_heat
    assert result.winner == 1
    assert game.dice.calls == [10, 10_000, 10, 10, 10_000, 10, 2]


def test_every_lane_advances_at_least_one(scenario):
    rules = RaceRules(lane_count=1, track_length=3, min_bps=0)
    game = scenario([1], [9, 9, 9], rules)
    result = game.run()

    assert result.frames == ((0,), (1,), (2,), (3,))
    assert game.dice.calls == [10, 10, 10]


def test_exhausting_max_ticks_is_fatal():
    with pytest.raises(SimulationExhaustedError):
        simulate_race(seed_from_int(0), [10, 10, 10, 10], RaceRules(max_ticks=3))


def test_score_count_must_match_lanes():
    with pytest.raises(ValueError):
        simulate_race(seed_from_int(0), [10, 10, 10], CLASSIC_RULES)


def test_frames_start_at_zero_and_end_at_result():
    result = simulate_race(seed_from_int(3), [3, 8, 5, 10])

    assert result.frames[0] == (0, 0, 0, 0)
    assert result.frames[-1] == result.distances
    assert len(result.frames) == result.ticks + 1
    assert max(result.distances) >= CLASSIC_RULES.track_length
    assert max(result.frames[-2]) < CLASSIC_RULES.track_length


def test_winner_is_a_leader():
    for i in range(20):
        result = simulate_race(seed_from_int(i), [1, 4, 7, 10])
        assert result.winner in result.leaders
        assert result.distances[result.winner] == max(result.distances)


def test_skipping_frames_keeps_outcome():
    seed = seed_from_int(11)
    full = simulate_race(seed, [2, 2, 9, 9])
    lean = simulate_race(seed, [2, 2, 9, 9], record_frames=False)

    assert lean.frames == ()
    assert (lean.winner, lean.distances, lean.ticks) == (full.winner, full.distances, full.ticks)


def test_out_of_range_scores_are_clamped():
    seed = seed_from_int(5)
    assert simulate_race(seed, [0, -4, 11, 99]) == simulate_race(seed, [1, 1, 10, 10])


def test_group_finish_order_groups_ties():
    assert group_finish_order((5, 9, 9, 1)) == (
        FinishGroup(distance=9, lanes=(1, 2)),
        FinishGroup(distance=5, lanes=(0,)),
        FinishGroup(distance=1, lanes=(3,)),
    )


def test_full_race_runs_every_lane_past_overshoot():
    rules = CLASSIC_RULES
    result = simulate_full_race(seed_from_int(9), [1, 5, 5, 10], rules)

    line = rules.track_length + rules.finish_overshoot
    assert min(result.distances) >= line
    assert result.ticks <= rules.max_ticks
    lanes = sorted(lane for group in result.finish_order for lane in group.lanes)
    assert lanes == [0, 1, 2, 3]
    assert [g.distance for g in result.finish_order] == sorted(
        {*result.distances},
        reverse=True,
    )


def test_full_race_exhaustion_is_fatal():
    with pytest.raises(SimulationExhaustedError):
        simulate_full_race(seed_from_int(0), [10, 10, 10, 10], RaceRules(max_ticks=100))
