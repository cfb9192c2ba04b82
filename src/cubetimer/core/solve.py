"""Solve records and the penalty rules that turn them into times."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, Sequence

PLUS_TWO_MS = 2000


class Penalty(Enum):
    """Penalty applied to a solve after the fact."""

    NONE = "none"
    PLUS_TWO = "+2"
    DNF = "DNF"

    @classmethod
    def parse(cls, value: str | None) -> Penalty:
        """Accept ``none``/``+2``/``dnf`` in any case; ``None`` means no penalty."""
        if value is None:
            return cls.NONE
        normalised = value.strip().upper()
        for penalty in cls:
            if penalty.value.upper() == normalised:
                return penalty
        raise ValueError(f"unknown penalty {value!r}; expected one of none, +2, DNF")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Solve:
    """One timed attempt.  Only ``penalty`` and ``notes`` change after creation."""

    time_ms: int
    scramble: str = ""
    date: datetime = field(default_factory=_utcnow)
    penalty: Penalty = Penalty.NONE
    notes: str | None = None
    id: int | None = None
    session_id: str | None = None
    case_id: str | None = None

    def __post_init__(self) -> None:
        if self.time_ms < 0:
            raise ValueError(f"time_ms must not be negative, got {self.time_ms}")

    @property
    def is_dnf(self) -> bool:
        return self.penalty == Penalty.DNF

    def with_penalty(self, penalty: Penalty) -> Solve:
        return replace(self, penalty=penalty)

    def with_notes(self, notes: str | None) -> Solve:
        return replace(self, notes=notes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "case_id": self.case_id,
            "time_ms": self.time_ms,
            "scramble": self.scramble,
            "date": self.date.isoformat(),
            "penalty": self.penalty.value,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Solve:
        return cls(
            time_ms=data["time_ms"],
            scramble=data.get("scramble", ""),
            date=datetime.fromisoformat(data["date"]),
            penalty=Penalty(data.get("penalty", Penalty.NONE.value)),
            notes=data.get("notes"),
            id=data.get("id"),
            session_id=data.get("session_id"),
            case_id=data.get("case_id"),
        )


def effective_time(solve: Solve) -> float:
    """Time counted for statistics: ``inf`` for DNF, +2000 ms for +2."""
    if solve.penalty == Penalty.DNF:
        return math.inf
    if solve.penalty == Penalty.PLUS_TWO:
        return float(solve.time_ms + PLUS_TWO_MS)
    return float(solve.time_ms)


class SolveHistoryProvider(Protocol):
    """Read-only access to stored solves, oldest first."""

    def solves(self, session_id: str | None = None) -> Sequence[Solve]: ...
