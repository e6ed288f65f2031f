from lane_race.replay.stepper import (
    RaceReplay,
    ReplayVerification,
    TickFrame,
    verify_settlement,
)

__all__ = ["RaceReplay", "ReplayVerification", "TickFrame", "verify_settlement"]
