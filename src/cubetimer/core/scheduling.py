"""Repeating-task scheduling used for display refresh and inspection ticks.

Ticks only prompt the timer to re-read its clock; they never carry time
themselves, so a late or skipped tick cannot make a measurement drift.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from cubetimer.core.clock import FakeClock

logger = logging.getLogger(__name__)


class RepeatingTask(Protocol):
    """Handle for a periodic callback."""

    @property
    def active(self) -> bool: ...

    def cancel(self) -> None:
        """Stop the callback.  Calling this more than once is harmless."""
        ...


class Scheduler(Protocol):
    """Creates repeating tasks."""

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> RepeatingTask:
        """Run *callback* every *interval_ms* milliseconds until cancelled."""
        ...


def _check_interval(interval_ms: float) -> None:
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class _AsyncioTask:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_ms: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval_s = interval_ms / 1000.0
        self._callback = callback
        self._cancelled = False
        self._handle: asyncio.TimerHandle | None = None
        self._arm()

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self._interval_s, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._callback()
        # The callback may have cancelled us.
        if not self._cancelled:
            self._arm()


class AsyncioScheduler:
    """Scheduler running callbacks on an asyncio event loop.

    Everything happens on the loop's thread, so the timer never sees two
    callbacks at once.  When *loop* is omitted the running loop is used.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> RepeatingTask:
        _check_interval(interval_ms)
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        return _AsyncioTask(loop, interval_ms, callback)


# ---------------------------------------------------------------------------
# Deterministic scheduler for tests
# ---------------------------------------------------------------------------


class _ManualTask:
    def __init__(self, interval_ms: float, callback: Callable[[], None], due: float) -> None:
        self.interval_ms = interval_ms
        self.callback = callback
        self.due = due
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Scheduler driven by a :class:`FakeClock`.

    :meth:`advance` moves the clock forward and fires every callback that
    falls due on the way, in due-time order, with the clock set to the
    moment each one was due.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._tasks: list[_ManualTask] = []

    @property
    def active_tasks(self) -> list[_ManualTask]:
        self._tasks = [task for task in self._tasks if task.active]
        return list(self._tasks)

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> RepeatingTask:
        _check_interval(interval_ms)
        task = _ManualTask(interval_ms, callback, self._clock.now() + interval_ms)
        self._tasks.append(task)
        return task

    def advance(self, ms: float) -> None:
        """Advance the clock by *ms*, firing due callbacks along the way."""
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        target = self._clock.now() + ms
        while True:
            due = [task for task in self.active_tasks if task.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            if task.due > self._clock.now():
                self._clock.set(task.due)
            task.due += task.interval_ms
            task.callback()
        self._clock.set(target)
