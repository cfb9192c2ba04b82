"""Hold-to-start input gate.

Turns raw press/release signals into the timer's semantic triggers.  The
boundary that owns the keyboard or pointer decides which events reach the
gate; the gate only enforces pairing and the minimum hold time.
"""

from __future__ import annotations

import logging

from cubetimer.core.clock import DEFAULT_CLOCK, Clock
from cubetimer.core.timer import ARMING_STATES, TimerStateMachine

logger = logging.getLogger(__name__)


class HoldGate:
    """Pairs ``press_down``/``press_up`` and decides commit versus abort.

    Duplicate presses (key repeat, a touch and a mouse event for the same
    gesture) and releases without a press are absorbed silently.
    """

    def __init__(self, machine: TimerStateMachine, clock: Clock | None = None) -> None:
        self._machine = machine
        self._clock: Clock = clock if clock is not None else DEFAULT_CLOCK
        self._holding = False
        self._hold_started_at = 0.0

    @property
    def holding(self) -> bool:
        return self._holding

    @property
    def machine(self) -> TimerStateMachine:
        return self._machine

    def press_down(self) -> None:
        if self._holding:
            return
        self._holding = True
        self._hold_started_at = self._clock.now()
        self._machine.press_start()

    def press_up(self) -> None:
        if not self._holding:
            return
        held_ms = max(self._clock.now() - self._hold_started_at, 0.0)
        self._holding = False
        if (
            held_ms >= self._machine.config.hold_duration_ms
            and self._machine.state in ARMING_STATES
        ):
            self._machine.commit_start()
        else:
            logger.debug("hold of %.0f ms released early", held_ms)
            self._machine.abort_start()

    def cancel(self) -> None:
        self._holding = False
        self._machine.cancel()
