"""Timer core: the hold-to-start solve timer state machine.

The machine is driven by four triggers (:meth:`TimerStateMachine.press_start`,
:meth:`~TimerStateMachine.commit_start`, :meth:`~TimerStateMachine.abort_start`
and :meth:`~TimerStateMachine.cancel`), normally fed by a
:class:`~cubetimer.core.hold_gate.HoldGate`.  It contains no I/O and never
raises on an unexpected trigger: a trigger that does not apply to the current
state is ignored and the method returns ``False``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from cubetimer.core.clock import DEFAULT_CLOCK, Clock
from cubetimer.core.config import TimerConfig
from cubetimer.core.formatting import format_display_time
from cubetimer.core.scheduling import AsyncioScheduler, RepeatingTask, Scheduler

logger = logging.getLogger(__name__)


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    READY = "ready"
    INSPECTION = "inspection"
    INSPECTION_READY = "inspection_ready"
    RUNNING = "running"
    STOPPED = "stopped"


ARMING_STATES = frozenset({TimerState.READY, TimerState.INSPECTION_READY})
_INSPECTING_STATES = frozenset({TimerState.INSPECTION, TimerState.INSPECTION_READY})
_RESTING_STATES = frozenset({TimerState.IDLE, TimerState.STOPPED})
_CANCELLABLE_STATES = frozenset(
    {
        TimerState.READY,
        TimerState.INSPECTION,
        TimerState.INSPECTION_READY,
        TimerState.RUNNING,
    }
)

DISPLAY_REFRESH_MS = 10
INSPECTION_TICK_MS = 1000

_ARMED_DISPLAY = "0.00"


class TimerStateMachine:
    """A cyclic solve timer: idle -> (inspection ->) ready -> running -> stopped.

    Elapsed time is always recomputed as ``clock.now() - start``; the 10 ms
    refresh ticks and 1 s inspection ticks only decide *when* the value is
    re-read.  If the clock is observed moving backwards, durations are
    clamped to zero and :attr:`clock_anomaly` is set.
    """

    def __init__(
        self,
        config: TimerConfig | None = None,
        *,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
        on_state_change: Callable[[TimerState], None] | None = None,
        on_complete: Callable[[int], None] | None = None,
        on_inspection_tick: Callable[[int], None] | None = None,
        on_inspection_expired: Callable[[], None] | None = None,
        on_display: Callable[[int], None] | None = None,
        initial_display_text: str = "0.00",
    ) -> None:
        self._config: TimerConfig = config if config is not None else TimerConfig()
        self._clock: Clock = clock if clock is not None else DEFAULT_CLOCK
        self._scheduler: Scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self._on_state_change = on_state_change
        self._on_complete = on_complete
        self._on_inspection_tick = on_inspection_tick
        self._on_inspection_expired = on_inspection_expired
        self._on_display = on_display
        self._initial_display_text = initial_display_text

        self._state: TimerState = TimerState.IDLE
        self._start_timestamp: float = 0.0
        self._stopped_at: float = 0.0
        self._elapsed_ms: int = 0
        self._last_time_ms: int | None = None
        self._inspection_started_at: float = 0.0
        self._inspection_remaining: int = self._config.inspection_time_sec
        self._refresh_task: RepeatingTask | None = None
        self._inspection_task: RepeatingTask | None = None
        self._clock_anomaly = False
        self._closed = False

    # -- properties ----------------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def elapsed_ms(self) -> int:
        """Elapsed solve time: live while running, frozen once stopped."""
        if self._state == TimerState.RUNNING:
            return self._duration_since(self._start_timestamp)
        return self._elapsed_ms

    @property
    def inspection_remaining(self) -> int:
        """Whole seconds of inspection left."""
        return self._inspection_remaining

    @property
    def last_time_ms(self) -> int | None:
        """The most recently completed solve time, if any."""
        return self._last_time_ms

    @property
    def clock_anomaly(self) -> bool:
        """True if the clock went backwards during the current measurement."""
        return self._clock_anomaly

    @property
    def closed(self) -> bool:
        return self._closed

    # -- triggers ------------------------------------------------------------

    def press_start(self) -> bool:
        """A press began: arm, enter inspection, or stop a running solve."""
        if self._closed:
            return False
        if self._state == TimerState.RUNNING:
            self._stop()
            return True
        if self._state == TimerState.STOPPED and not self._cooldown_elapsed():
            logger.debug("press ignored: cooldown of %d ms still active", self._config.cooldown_ms)
            return False
        if self._state in _RESTING_STATES:
            if self._config.use_inspection:
                self._begin_inspection()
            else:
                self._set_state(TimerState.READY)
            return True
        if self._state == TimerState.INSPECTION:
            self._set_state(TimerState.INSPECTION_READY)
            return True
        return self._ignore("press_start")

    def commit_start(self) -> bool:
        """The hold lasted long enough: start timing."""
        if self._closed or self._state not in ARMING_STATES:
            return self._ignore("commit_start")
        self._clock_anomaly = False
        self._start_timestamp = self._clock.now()
        self._elapsed_ms = 0
        # Scheduled before the state change so a re-entrant callback can cancel it.
        self._refresh_task = self._scheduler.call_every(DISPLAY_REFRESH_MS, self._on_refresh_tick)
        self._set_state(TimerState.RUNNING)
        return True

    def abort_start(self) -> bool:
        """The hold was too short: fall back to the pre-press state."""
        if self._closed:
            return False
        if self._state == TimerState.READY:
            self._set_state(TimerState.IDLE)
            return True
        if self._state == TimerState.INSPECTION_READY:
            # The inspection countdown never stopped; only the state changes.
            self._set_state(TimerState.INSPECTION)
            return True
        return self._ignore("abort_start")

    def cancel(self) -> bool:
        """Abandon whatever is in progress and return to IDLE without a result."""
        if self._closed or self._state not in _CANCELLABLE_STATES:
            return self._ignore("cancel")
        if self._state == TimerState.RUNNING:
            logger.debug("running solve cancelled after %d ms", self.elapsed_ms)
        self._elapsed_ms = 0
        self._reset_inspection()
        self._set_state(TimerState.IDLE)
        return True

    # -- display -------------------------------------------------------------

    def display_text(self) -> str:
        """Return what a view should show for the current state."""
        if self._state in ARMING_STATES:
            return _ARMED_DISPLAY
        if self._state == TimerState.INSPECTION:
            return str(self._inspection_remaining)
        if self._state in (TimerState.RUNNING, TimerState.STOPPED):
            return format_display_time(self.elapsed_ms)
        if self._last_time_ms is not None:
            return format_display_time(self._last_time_ms)
        return self._initial_display_text

    # -- teardown ------------------------------------------------------------

    def close(self) -> None:
        """Cancel every scheduled callback.  The machine ignores triggers afterwards."""
        self._cancel_refresh()
        self._cancel_inspection()
        self._closed = True

    def __enter__(self) -> TimerStateMachine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- private helpers -----------------------------------------------------

    def _set_state(self, new_state: TimerState) -> None:
        """Enter *new_state*, cancelling ticks owned by the state being left."""
        if new_state != TimerState.RUNNING:
            self._cancel_refresh()
        if new_state not in _INSPECTING_STATES:
            self._cancel_inspection()
        logger.debug("timer %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        if self._on_state_change is not None:
            self._on_state_change(new_state)

    def _ignore(self, trigger: str) -> bool:
        logger.debug("%s ignored in %s state", trigger, self._state.value)
        return False

    def _duration_since(self, timestamp: float) -> int:
        """Milliseconds from *timestamp* to now, never negative."""
        duration = self._clock.now() - timestamp
        if duration < 0:
            if not self._clock_anomaly:
                logger.warning("clock moved backwards by %.1f ms; clamping to zero", -duration)
            self._clock_anomaly = True
            return 0
        return int(round(duration))

    def _cooldown_elapsed(self) -> bool:
        now = self._clock.now()
        if now < self._stopped_at:
            # Time since the stop is unknown; do not lock out input.
            logger.warning("clock moved backwards by %.1f ms since stop", self._stopped_at - now)
            self._clock_anomaly = True
            self._stopped_at = now - self._config.cooldown_ms
            return True
        return now - self._stopped_at >= self._config.cooldown_ms

    def _stop(self) -> None:
        elapsed = self._duration_since(self._start_timestamp)
        self._elapsed_ms = elapsed
        self._last_time_ms = elapsed
        self._stopped_at = self._clock.now()
        self._set_state(TimerState.STOPPED)
        logger.debug("solve completed in %d ms", elapsed)
        if self._on_complete is not None:
            self._on_complete(elapsed)

    def _begin_inspection(self) -> None:
        self._inspection_started_at = self._clock.now()
        self._inspection_remaining = self._config.inspection_time_sec
        self._inspection_task = self._scheduler.call_every(
            INSPECTION_TICK_MS, self._on_inspection_timer
        )
        self._set_state(TimerState.INSPECTION)
        if self._state == TimerState.INSPECTION and self._on_inspection_tick is not None:
            self._on_inspection_tick(self._inspection_remaining)

    def _reset_inspection(self) -> None:
        self._inspection_remaining = self._config.inspection_time_sec

    def _on_inspection_timer(self) -> None:
        # Seconds left come from the clock, so a late tick cannot skew them.
        elapsed_s = self._duration_since(self._inspection_started_at) // 1000
        remaining = max(self._config.inspection_time_sec - elapsed_s, 0)
        if remaining == self._inspection_remaining:
            return
        self._inspection_remaining = remaining
        if remaining == 0:
            self._expire_inspection()
            return
        if self._on_inspection_tick is not None:
            self._on_inspection_tick(remaining)

    def _expire_inspection(self) -> None:
        logger.info("inspection expired after %d s; no solve recorded", self._config.inspection_time_sec)
        self._reset_inspection()
        self._set_state(TimerState.IDLE)
        if self._on_inspection_expired is not None:
            self._on_inspection_expired()

    def _on_refresh_tick(self) -> None:
        self._elapsed_ms = self._duration_since(self._start_timestamp)
        if self._on_display is not None:
            self._on_display(self._elapsed_ms)

    def _cancel_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    def _cancel_inspection(self) -> None:
        if self._inspection_task is not None:
            self._inspection_task.cancel()
            self._inspection_task = None
