"""Clock abstraction for the timer core.

All durations in the core are milliseconds.  Production code uses
:class:`SystemClock`; tests inject :class:`FakeClock` to control time
without sleeping.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source used by the timer and the hold gate."""

    def now(self) -> float:
        """Return the current monotonic time in milliseconds."""
        ...


class SystemClock:
    """Clock backed by ``time.monotonic()``.

    Immune to wall-clock adjustments, so elapsed times measured against it
    never jump when the system time is changed.
    """

    def now(self) -> float:
        return time.monotonic() * 1000.0


class FakeClock:
    """Controllable clock for deterministic tests.

    Example::

        clock = FakeClock()
        timer = TimerStateMachine(config, clock=clock, scheduler=ManualScheduler(clock))
        clock.advance(300)
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def now(self) -> float:
        return self._current

    def advance(self, ms: float) -> None:
        """Move time forward by *ms* milliseconds.

        Raises:
            ValueError: If *ms* is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        self._current += ms

    def set(self, value: float) -> None:
        """Set the clock to an absolute value.

        Unlike :meth:`advance` this may move time backwards, which is how
        tests simulate a clock anomaly.
        """
        self._current = value


DEFAULT_CLOCK: Clock = SystemClock()
