"""Retry delay policy shared by both pipeline stages."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

# 2 ** 62 * base is already far beyond any sane cap; larger exponents would
# only risk float overflow.
_MAX_EXPONENT = 62


@dataclass(frozen=True)
class Backoff:
    """Capped exponential backoff with optional jitter.

    ``delay(n) = min(base_seconds * 2 ** n, max_seconds)``, then, when
    ``jitter`` is non-zero, stretched by a random fraction in ``[0, jitter]``
    and capped again. Without jitter the delay is deterministic and
    non-decreasing in ``attempt``.

    The scraper this replaces computed ``2 ^ attempt * 100ms`` with a bitwise
    XOR, which yields 200ms, 300ms, 0ms, 100ms, 600ms, ... and only grows
    linearly with the attempt number. That formula is not reproduced here.
    """

    base_seconds: float = 0.1
    max_seconds: float = 30.0
    jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.base_seconds < 0 or self.max_seconds < 0:
            raise ValueError("backoff durations must be non-negative")
        if self.jitter < 0:
            raise ValueError("jitter must be non-negative")

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        if attempt < 0:
            raise ValueError(f"attempt must be non-negative, got {attempt}")
        delay = min(self.base_seconds * (2 ** min(attempt, _MAX_EXPONENT)), self.max_seconds)
        if self.jitter:
            delay += self.rng.uniform(0, delay * self.jitter)
            delay = min(delay, self.max_seconds)
        return delay
