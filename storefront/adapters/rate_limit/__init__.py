"""Rate limiting adapters.

A small abstraction layer so the service can start with an in-memory
sliding-window limiter and later move to a shared store without changing the
governor or API layer.
"""

from storefront.adapters.rate_limit.base import AbstractRateLimiter, LimiterStat, RateLimitResult
from storefront.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "LimiterStat",
    "RateLimitResult",
]
