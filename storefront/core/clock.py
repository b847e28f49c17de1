"""Time sources used by the limiter and cache.

Both components take a clock instead of calling ``time`` directly so tests can
drive window and TTL boundaries deterministically.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source returning seconds as a float."""

    def now(self) -> float: ...


class MonotonicClock:
    """Production clock backed by ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self._current = start

    def now(self) -> float:
        return self._current

    def set(self, value: float) -> None:
        self._current = value

    def advance(self, seconds: float) -> None:
        self._current += seconds
