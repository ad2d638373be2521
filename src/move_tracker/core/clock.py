"""
Time sources for the session engine.

Clock supplies the wall-clock date (used to pick the statistics month) and
a monotonic reading (used to count elapsed seconds).  Ticker turns the
monotonic reading into a cooperative one-tick-per-interval stream that the
engine drains between events instead of running a background timer.
"""

import time
from datetime import datetime, timedelta
from typing import Protocol

from .config import TICK_INTERVAL_SECONDS


class Clock(Protocol):
    """Anything that can tell wall-clock and monotonic time."""

    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...


class SystemClock:
    """Clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now()

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and by scripted (non-interactive) sessions.
    """

    def __init__(self, start: datetime | None = None, monotonic_start: float = 0.0):
        self._now = start or datetime(2000, 1, 1)
        self._monotonic = monotonic_start

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def set(self, when: datetime) -> None:
        """Jump the wall clock; monotonic time is unaffected."""
        self._now = when

    def advance(self, seconds: float) -> None:
        """Move both wall-clock and monotonic time forward."""
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._monotonic += seconds
        self._now += timedelta(seconds=seconds)


class Ticker:
    """
    Cooperative interval stream over a Clock.

    start() anchors the stream, due() returns how many whole intervals
    have elapsed since the last drain and consumes them, cancel() stops
    the stream and drops anything pending.  A cancelled ticker reports
    zero ticks until started again.
    """

    def __init__(self, clock: Clock, interval: float = TICK_INTERVAL_SECONDS):
        if interval <= 0:
            raise ValueError("Tick interval must be positive")
        self.clock = clock
        self.interval = interval
        self._anchor: float | None = None

    @property
    def active(self) -> bool:
        return self._anchor is not None

    def start(self) -> None:
        self._anchor = self.clock.monotonic()

    def cancel(self) -> None:
        self._anchor = None

    def due(self) -> int:
        if self._anchor is None:
            return 0
        elapsed = self.clock.monotonic() - self._anchor
        ticks = int(elapsed // self.interval)
        # Carry the fractional remainder into the next drain
        self._anchor += ticks * self.interval
        return max(ticks, 0)
