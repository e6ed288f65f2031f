"""
Seeded dice shared by every runtime that has to reproduce a race.

The dice reads the 256-bit entropy as 64 hex nibbles, most significant first.
When all 64 nibbles are spent the entropy is replaced by its own keccak-256
digest. Draws use rejection sampling on whole nibbles so there is no modulo
bias. Any other implementation fed the same seed and the same sequence of
``roll`` arguments returns the same values.
"""

from __future__ import annotations

from functools import lru_cache

from Crypto.Hash import keccak

from lane_race.core.types import SEED_BYTES, SeedLike

NIBBLES_PER_ENTROPY: int = SEED_BYTES * 2


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def coerce_seed(seed: SeedLike) -> bytes:
    """Normalize a seed to exactly 32 big-endian bytes."""
    if isinstance(seed, bool):
        raise TypeError("seed must be bytes, a hex string or an int, not bool")

    if isinstance(seed, int):
        if not 0 <= seed < 1 << (8 * SEED_BYTES):
            raise ValueError(f"integer seed must fit in {8 * SEED_BYTES} bits")
        return seed.to_bytes(SEED_BYTES, "big")

    if isinstance(seed, str):
        digits = seed[2:] if seed[:2].lower() == "0x" else seed
        if len(digits) != 2 * SEED_BYTES:
            raise ValueError(
                f"hex seed must have {2 * SEED_BYTES} digits, got {len(digits)}",
            )
        return bytes.fromhex(digits)

    if isinstance(seed, (bytes, bytearray, memoryview)):
        raw = bytes(seed)
        if len(raw) != SEED_BYTES:
            raise ValueError(f"seed must be {SEED_BYTES} bytes, got {len(raw)}")
        return raw

    raise TypeError(f"unsupported seed type: {type(seed).__name__}")


def ceil_log2(n: int) -> int:
    return (n - 1).bit_length() if n > 1 else 0


@lru_cache(maxsize=64)
def _range_params(n: int) -> tuple[int, int]:
    """(nibbles per candidate, rejection threshold) for ``roll(n)``."""
    nibbles = max(1, (ceil_log2(n) + 3) // 4)
    span = 1 << (4 * nibbles)
    return nibbles, span - span % n


class SeededDice:
    """Uniform integer draws from a fixed 256-bit seed."""

    __slots__ = ("_word", "position")

    def __init__(self, seed: SeedLike) -> None:
        self._word: int = int.from_bytes(coerce_seed(seed), "big")
        self.position: int = 0

    @property
    def entropy(self) -> bytes:
        return self._word.to_bytes(SEED_BYTES, "big")

    def roll(self, n: int) -> int:
        """Return an integer uniformly drawn from ``[0, n)``."""
        if n <= 0:
            raise ValueError(f"roll() needs n > 0, got {n}")

        nibbles, threshold = _range_params(n)
        while True:
            candidate = self._take(nibbles)
            if candidate < threshold:
                return candidate % n

    def _take(self, count: int) -> int:
        value = 0
        for _ in range(count):
            if self.position >= NIBBLES_PER_ENTROPY:
                self._word = int.from_bytes(keccak256(self.entropy), "big")
                self.position = 0
            shift = 4 * (NIBBLES_PER_ENTROPY - 1 - self.position)
            value = (value << 4) | ((self._word >> shift) & 0xF)
            self.position += 1
        return value
