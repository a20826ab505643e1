"""Bit-flip mutation primitives.

The first :data:`RESERVED_PREFIX` bytes of a sample are never touched
(container / format markers such as the JPEG SOI).  Of the remaining
bytes, 1% are picked without replacement and each gets exactly one bit
toggled.
"""

from __future__ import annotations

import math
import random

RESERVED_PREFIX = 4
FLIP_RATIO = 0.01

_sysrand = random.SystemRandom()


def flip_count(length: int) -> int:
    """Number of bytes to mutate in a sample of ``length`` bytes."""
    if length <= RESERVED_PREFIX:
        return 0
    return math.floor((length - RESERVED_PREFIX) * FLIP_RATIO)


def flip_bit(value: int, rng: random.Random | None = None) -> int:
    """Toggle one uniformly chosen bit of a byte value."""
    rng = rng or _sysrand
    return value ^ (1 << rng.randrange(8))


def bit_flip(seed: bytes, rng: random.Random | None = None) -> bytes:
    """Return a mutated copy of ``seed``; the seed itself is left intact."""
    rng = rng or _sysrand
    mutated = bytearray(seed)
    count = flip_count(len(seed))
    if count:
        for offset in rng.sample(range(RESERVED_PREFIX, len(seed)), count):
            mutated[offset] = flip_bit(mutated[offset], rng)
    return bytes(mutated)
