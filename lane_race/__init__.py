"""Deterministic lane-race simulation and win-probability tables."""

from lane_race.core.rules import CLASSIC_RULES, RULE_PRESETS, SIX_LANE_RULES, RaceRules
from lane_race.engine.dice import SeededDice
from lane_race.engine.race import RaceResult, simulate_full_race, simulate_race
from lane_race.replay import RaceReplay, verify_settlement

__all__ = [
    "CLASSIC_RULES",
    "RULE_PRESETS",
    "SIX_LANE_RULES",
    "RaceReplay",
    "RaceResult",
    "RaceRules",
    "SeededDice",
    "simulate_full_race",
    "simulate_race",
    "verify_settlement",
]
