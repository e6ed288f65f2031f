from typing import Literal

PresetName = Literal["classic", "six_lane"]

# A race seed as published by settlement: raw bytes, a hex string, or an int.
SeedLike = bytes | str | int

Scores = tuple[int, ...]
Distances = tuple[int, ...]

BPS_SCALE: int = 10_000
SEED_BYTES: int = 32
MIN_SCORE: int = 1
DEFAULT_MAX_SCORE: int = 10
