"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock covers the read-prune-decide-write cycle, so two
  concurrent checks for the same key can never both take the last slot.
- Windows are pruned lazily when their key is next checked; idle keys are
  never swept.
"""

from __future__ import annotations

import math
import threading
from collections import deque

from storefront.adapters.rate_limit.base import (
    AbstractRateLimiter,
    LimiterStat,
    RateLimitResult,
)
from storefront.core.clock import Clock, MonotonicClock


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting admitted requests over a trailing window.

    Only requests admitted within the last ``window_seconds`` count toward
    the budget, so there is no burst at calendar-window boundaries.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        """Initialize the limiter.

        Args:
            clock: Monotonic time source used when ``admit`` gets no ``now``.
        """
        self._clock = clock or MonotonicClock()
        self._lock = threading.RLock()
        self._windows: dict[str, deque[float]] = {}

    def _prune_locked(self, key: str, now: float, window_seconds: float) -> deque[float]:
        window = self._windows.get(key)
        if window is None:
            window = deque()
        while window and now - window[0] >= window_seconds:
            window.popleft()
        if window:
            self._windows[key] = window
        else:
            self._windows.pop(key, None)
        return window

    @staticmethod
    def _blocked(window: deque[float], now: float, max_requests: int, window_seconds: float) -> RateLimitResult:
        if window:
            retry_after = max(0.0, window_seconds - (now - window[0]))
        else:
            retry_after = window_seconds
        return RateLimitResult(
            allowed=False,
            limit=max(max_requests, 0),
            remaining=0,
            retry_after=retry_after,
            retry_after_seconds=max(0, math.ceil(retry_after)),
        )

    def admit(
        self,
        key: str,
        max_requests: int,
        window_seconds: float,
        now: float | None = None,
    ) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        A rejected request leaves no timestamp behind; only pruning of expired
        entries is persisted.

        Raises:
            ValueError: If key is empty or window_seconds is not positive.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        if now is None:
            now = self._clock.now()

        with self._lock:
            window = self._prune_locked(key, now, window_seconds)

            if max_requests < 1 or len(window) + 1 > max_requests:
                return self._blocked(window, now, max_requests, window_seconds)

            window.append(now)
            self._windows[key] = window
            return RateLimitResult(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - len(window),
            )

    def stats(self) -> list[LimiterStat]:
        with self._lock:
            snapshot = [
                LimiterStat(key=key, count=len(window))
                for key, window in self._windows.items()
                if window
            ]
        # sorted() is stable, so ties keep insertion order
        return sorted(snapshot, key=lambda stat: stat.count, reverse=True)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
