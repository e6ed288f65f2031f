"""Authoritative race simulation, as run by the settlement layer."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from lane_race.core.errors import SimulationExhaustedError
from lane_race.core.rules import CLASSIC_RULES, RaceRules
from lane_race.core.types import BPS_SCALE, Distances, SeedLike
from lane_race.engine.dice import SeededDice
from lane_race.engine.handicap import clamp_score, handicap_bps
from lane_race.engine.state import LaneState, RaceState

logger = logging.getLogger("lane_race.race")


class Dice(Protocol):
    def roll(self, n: int) -> int: ...


@dataclass(frozen=True, slots=True)
class RaceResult:
    winner: int
    distances: Distances
    # frames[0] is the start line, frames[t] the snapshot after tick t.
    frames: tuple[Distances, ...]
    ticks: int
    leaders: tuple[int, ...]

    @property
    def dead_heat(self) -> bool:
        return len(self.leaders) > 1


@dataclass(frozen=True, slots=True)
class FinishGroup:
    """Lanes that crossed with exactly the same distance."""

    distance: int
    lanes: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class FullRaceResult:
    distances: Distances
    finish_order: tuple[FinishGroup, ...]
    ticks: int


def new_race_state(scores: Sequence[float], rules: RaceRules) -> RaceState:
    if len(scores) != rules.lane_count:
        raise ValueError(
            f"expected {rules.lane_count} scores, got {len(scores)}",
        )
    lanes = []
    for idx, raw in enumerate(scores):
        score = clamp_score(raw, rules.max_score)
        lanes.append(
            LaneState(
                idx=idx,
                score=score,
                handicap_bps=handicap_bps(score, rules.min_bps, rules.max_score),
            ),
        )
    return RaceState(lanes=lanes)


def advance_lane(dice: Dice, lane: LaneState, speed_range: int) -> int:
    """Move one lane for one tick and return the step taken.

    The handicapped speed is rounded up with probability equal to its
    fractional part, so the expected step equals the exact handicapped speed.
    """
    base_speed = dice.roll(speed_range) + 1
    raw = base_speed * lane.handicap_bps
    step = raw // BPS_SCALE
    remainder = raw % BPS_SCALE
    if remainder > 0 and dice.roll(BPS_SCALE) < remainder:
        step += 1
    step = max(1, step)
    lane.distance += step
    return step


def run_tick(dice: Dice, state: RaceState, rules: RaceRules) -> None:
    for lane in state.lanes:
        advance_lane(dice, lane, rules.speed_range)
    state.tick += 1


def break_tie(dice: Dice, leaders: Sequence[int]) -> int:
    if len(leaders) == 1:
        return leaders[0]
    return leaders[dice.roll(len(leaders))]


def run_race(
    dice: Dice,
    scores: Sequence[float],
    rules: RaceRules = CLASSIC_RULES,
    *,
    record_frames: bool = True,
) -> RaceResult:
    """Run the tick loop on an existing dice until a lane crosses the line."""
    state = new_race_state(scores, rules)
    frames: list[Distances] = [state.distances] if record_frames else []

    while state.tick < rules.max_ticks:
        run_tick(dice, state, rules)
        if record_frames:
            frames.append(state.distances)
        if state.any_past(rules.track_length):
            break
    else:
        raise SimulationExhaustedError(
            f"no lane reached {rules.track_length} within {rules.max_ticks} ticks "
            f"(distances={list(state.distances)})",
        )

    leaders = state.leaders()
    winner = break_tie(dice, leaders)
    if len(leaders) > 1:
        logger.debug("Dead heat between %s, Lane %d wins the draw", leaders, winner)
    logger.debug("Lane %d wins after %d ticks", winner, state.tick)

    return RaceResult(
        winner=winner,
        distances=state.distances,
        frames=tuple(frames),
        ticks=state.tick,
        leaders=tuple(leaders),
    )


def simulate_race(
    seed: SeedLike,
    scores: Sequence[float],
    rules: RaceRules = CLASSIC_RULES,
    *,
    record_frames: bool = True,
) -> RaceResult:
    """Compute the settled outcome of one race from its published seed."""
    return run_race(SeededDice(seed), scores, rules, record_frames=record_frames)


def group_finish_order(distances: Sequence[int]) -> tuple[FinishGroup, ...]:
    """Rank lanes by distance, descending, grouping exact ties."""
    groups: dict[int, list[int]] = {}
    for lane in sorted(range(len(distances)), key=lambda i: (-distances[i], i)):
        groups.setdefault(distances[lane], []).append(lane)
    return tuple(FinishGroup(distance=d, lanes=tuple(lanes)) for d, lanes in groups.items())


def simulate_full_race(
    seed: SeedLike,
    scores: Sequence[float],
    rules: RaceRules = CLASSIC_RULES,
) -> FullRaceResult:
    """
    Run until every lane is ``finish_overshoot`` past the line.

    Used for place/show pricing, where the whole finish order matters. Ties are
    reported as groups rather than broken with the dice.
    """
    dice = SeededDice(seed)
    state = new_race_state(scores, rules)
    finish_line = rules.track_length + rules.finish_overshoot

    while not state.all_past(finish_line):
        if state.tick >= rules.max_ticks:
            raise SimulationExhaustedError(
                f"not every lane reached {finish_line} within {rules.max_ticks} ticks "
                f"(distances={list(state.distances)})",
            )
        run_tick(dice, state, rules)

    return FullRaceResult(
        distances=state.distances,
        finish_order=group_finish_order(state.distances),
        ticks=state.tick,
    )
