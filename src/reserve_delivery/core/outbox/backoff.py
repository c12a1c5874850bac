"""
Retry backoff shared by both workers.

backoff(attempt) = min(cap, 2 ** (attempt - 1)) minutes:
1m, 2m, 4m, 8m, 16m, then the cap (30m by default).
"""

import random
from datetime import datetime, timedelta
from typing import Optional

DEFAULT_CAP_MINUTES = 30


def backoff_minutes(attempt: int, cap_minutes: int = DEFAULT_CAP_MINUTES) -> int:
    """Minutes to wait after the given (1-based) failed attempt."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    if cap_minutes < 1:
        raise ValueError(f"cap_minutes must be >= 1, got {cap_minutes}")
    exponent = attempt - 1
    if exponent >= cap_minutes.bit_length():
        return cap_minutes
    return min(cap_minutes, 2 ** exponent)


class BackoffPolicy:
    """
    Exponential backoff with a ceiling.

    ``jitter_ratio`` adds up to that fraction of the delay on top of it so
    replicas retrying the same failure do not line up. It never shortens
    the delay. The default (0.0) is fully deterministic.
    """

    def __init__(
        self,
        cap_minutes: int = DEFAULT_CAP_MINUTES,
        jitter_ratio: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError(f"jitter_ratio must be within [0, 1], got {jitter_ratio}")
        self.cap_minutes = cap_minutes
        self.jitter_ratio = jitter_ratio
        self._rng = rng or random.Random()

    def delay(self, attempt: int) -> timedelta:
        seconds = backoff_minutes(attempt, self.cap_minutes) * 60.0
        if self.jitter_ratio:
            seconds += self._rng.uniform(0.0, seconds * self.jitter_ratio)
        return timedelta(seconds=seconds)

    def next_attempt_at(self, attempt: int, now: datetime) -> datetime:
        return now + self.delay(attempt)

    def __repr__(self) -> str:
        return f"BackoffPolicy(cap_minutes={self.cap_minutes}, jitter_ratio={self.jitter_ratio})"
