"""Timer configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_HOLD_DURATION_MS = 250
DEFAULT_COOLDOWN_MS = 500
DEFAULT_INSPECTION_TIME_SEC = 15

INSPECTION_TIMES_SEC = frozenset({8, 15, 30})


class ConfigurationError(ValueError):
    """Raised when a :class:`TimerConfig` is built with invalid values."""


@dataclass(frozen=True)
class TimerConfig:
    """Immutable settings for one timer instance.

    Changing any of these means building a new timer.
    """

    hold_duration_ms: int = DEFAULT_HOLD_DURATION_MS
    cooldown_ms: int = DEFAULT_COOLDOWN_MS
    use_inspection: bool = True
    inspection_time_sec: int = DEFAULT_INSPECTION_TIME_SEC

    def __post_init__(self) -> None:
        for name in ("hold_duration_ms", "cooldown_ms", "inspection_time_sec"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
        if not isinstance(self.use_inspection, bool):
            raise TypeError(
                f"use_inspection must be a bool, got {type(self.use_inspection).__name__}"
            )
        if self.hold_duration_ms <= 0:
            raise ConfigurationError(
                f"hold_duration_ms must be positive, got {self.hold_duration_ms}"
            )
        if self.cooldown_ms < 0:
            raise ConfigurationError(f"cooldown_ms must not be negative, got {self.cooldown_ms}")
        if self.inspection_time_sec not in INSPECTION_TIMES_SEC:
            allowed = ", ".join(str(t) for t in sorted(INSPECTION_TIMES_SEC))
            raise ConfigurationError(
                f"inspection_time_sec must be one of {allowed}, got {self.inspection_time_sec}"
            )

    @classmethod
    def full_solve(
        cls,
        use_inspection: bool = True,
        inspection_time_sec: int = DEFAULT_INSPECTION_TIME_SEC,
    ) -> TimerConfig:
        """Settings for timing whole solves."""
        return cls(
            cooldown_ms=DEFAULT_COOLDOWN_MS,
            use_inspection=use_inspection,
            inspection_time_sec=inspection_time_sec,
        )

    @classmethod
    def case_practice(cls) -> TimerConfig:
        """Settings for drilling a single algorithm case: no inspection, no cooldown."""
        return cls(cooldown_ms=0, use_inspection=False)
