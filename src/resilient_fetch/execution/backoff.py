"""Exponential backoff schedule with additive jitter.

Delay before retrying after the ``n``-th failed attempt (1-based)::

    initial_delay_ms * 2 ** (n - 1) + uniform(0, jitter_ms)

The jitter term is additive and bounded by a fixed ceiling, so the delay always
falls in the half-open window ``[base, base + jitter_ms)``.

Example:
    >>> schedule = BackoffSchedule(initial_delay_ms=1000, jitter_ms=0)
    >>> [schedule.next_delay_ms(n) for n in (1, 2, 3)]
    [1000.0, 2000.0, 4000.0]
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

DEFAULT_INITIAL_DELAY_MS = 1000.0
DEFAULT_JITTER_MS = 1000.0


@dataclass
class BackoffSchedule:
    """Delay schedule for sequential retries.

    Attributes:
        initial_delay_ms: Delay after the first failure, before jitter
        jitter_ms: Exclusive upper bound of the random jitter (0 disables it)
        rng: Random source; pass a seeded ``random.Random`` for reproducibility
    """

    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS
    jitter_ms: float = DEFAULT_JITTER_MS
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be non-negative, got {self.initial_delay_ms}")
        if self.jitter_ms < 0:
            raise ValueError(f"jitter_ms must be non-negative, got {self.jitter_ms}")

    def base_delay_ms(self, attempt: int) -> float:
        """Deterministic part of the delay after ``attempt`` failed."""
        if attempt < 1:
            raise ValueError(f"attempt is 1-based, got {attempt}")
        return float(self.initial_delay_ms * (2 ** (attempt - 1)))

    def next_delay_ms(self, attempt: int) -> float:
        """Delay in milliseconds after ``attempt`` failed, jitter included."""
        base = self.base_delay_ms(attempt)
        if not self.jitter_ms:
            return base
        delay = base + self.rng.uniform(0, self.jitter_ms)
        # uniform() may return its upper bound due to float rounding
        upper = base + self.jitter_ms
        if delay >= upper:
            delay = math.nextafter(upper, base)
        return delay

    def next_delay(self, attempt: int) -> float:
        """Delay in seconds, ready for ``asyncio.sleep`` / ``time.sleep``."""
        return self.next_delay_ms(attempt) / 1000.0

    def window(self, attempt: int) -> tuple[float, float]:
        """Half-open ``(low_ms, high_ms)`` range the delay is drawn from."""
        base = self.base_delay_ms(attempt)
        return base, base + self.jitter_ms

    def windows(self, max_attempts: int) -> list[tuple[int, float, float]]:
        """Windows for every wait a call with ``max_attempts`` can perform."""
        return [(n, *self.window(n)) for n in range(1, max_attempts)]
