"""Minimum-interval gate between displayed suggestions."""

from __future__ import annotations

import time
from typing import Callable, Optional

__all__ = ["RateLimiter"]

Clock = Callable[[], float]


class RateLimiter:
    """Allows a suggestion when ``min_interval`` seconds passed since the last one."""

    def __init__(self, min_interval: float = 0.0, *, clock: Clock | None = None) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock or time.monotonic
        self._last_emission: Optional[float] = None

    @property
    def last_emission(self) -> Optional[float]:
        return self._last_emission

    def allow(self) -> bool:
        if self._last_emission is None:
            return True
        return self._clock() - self._last_emission >= self.min_interval

    def record_emission(self) -> None:
        self._last_emission = self._clock()

    def time_until_next_allowed(self) -> float:
        if self._last_emission is None:
            return 0.0
        elapsed = self._clock() - self._last_emission
        return max(0.0, self.min_interval - elapsed)

    def reset(self) -> None:
        self._last_emission = None
