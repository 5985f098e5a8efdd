"""Sliding-window request counter for the generation API quota."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

from studio_queue.config import RateLimitSettings
from studio_queue.queue.models import RateStatus


class RateLimiter:
    """Counts API calls made during the last window.

    The limiter is advisory: it reports load, and callers decide how to pace
    themselves. Nothing here blocks a request.
    """

    def __init__(
        self,
        settings: RateLimitSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or RateLimitSettings()
        self._clock = clock
        self._timestamps: deque[float] = deque()

    def record_request(self) -> None:
        self._timestamps.append(self._clock())
        self._prune()

    def rpm(self) -> int:
        self._prune()
        return len(self._timestamps)

    def status(self) -> RateStatus:
        current = self.rpm()
        if current >= self.settings.critical_rpm:
            return RateStatus.CRITICAL
        if current >= self.settings.warning_rpm:
            return RateStatus.WARNING
        return RateStatus.HEALTHY

    def reset(self) -> None:
        self._timestamps.clear()

    def describe(self) -> str:
        return f"{self.rpm()} / {self.settings.critical_rpm} RPM ({self.status().value})"

    def _prune(self) -> None:
        now = self._clock()
        while self._timestamps and now - self._timestamps[0] >= self.settings.window_seconds:
            self._timestamps.popleft()
