"""Rate limiter interfaces.

The governor depends on this abstraction (not the concrete implementation)
so storage can move to a shared store later without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window.
        remaining: Slots left in the window after this decision.
        retry_after: Exact seconds until the oldest retained request leaves
            the window (None when allowed).
        retry_after_seconds: ``retry_after`` rounded up to whole seconds.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: float | None = None
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class LimiterStat:
    """Retained request count for one limiter key."""

    key: str
    count: int


class AbstractRateLimiter(ABC):
    """Interface for per-key rate limiters."""

    @abstractmethod
    def admit(
        self,
        key: str,
        max_requests: int,
        window_seconds: float,
        now: float | None = None,
    ) -> RateLimitResult:
        """Decide whether one more request for ``key`` fits in the window.

        Args:
            key: Limiter key (client + endpoint + resource ids).
            max_requests: Requests allowed per window.
            window_seconds: Window length in seconds.
            now: Decision time; the limiter's clock is used when omitted.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> list[LimiterStat]:
        """Return retained counts per key, busiest first."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        raise NotImplementedError
