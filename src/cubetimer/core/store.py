"""Session store: practice sessions, solves and personal bests in one JSON file.

This is the persistence collaborator around the timing core.  State is
written to ``<config_dir>/cubetimer.json`` after every mutation so that
history survives across invocations.
"""

from __future__ import annotations

import fcntl
import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cubetimer.core.config import DEFAULT_INSPECTION_TIME_SEC, TimerConfig
from cubetimer.core.solve import Penalty, Solve
from cubetimer.core.stats import (
    PersonalBestEvent,
    RecordKind,
    StatisticsResult,
    compute_statistics,
    detect_personal_bests,
    lowest_bests,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "cubetimer"
_STATE_FILE = "cubetimer.json"
_DEFAULT_SESSION_NAME = "Default Session"

SESSION_KINDS = ("full", "case")


class StoreError(Exception):
    """Base class for session-store lookups that fail."""


class SessionNotFoundError(StoreError):
    """Raised when a session id does not exist."""


class SolveNotFoundError(StoreError):
    """Raised when a solve id does not exist."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """A named group of solves with its own inspection settings."""

    id: str
    name: str
    kind: str = "full"
    created_at: datetime = field(default_factory=_utcnow)
    case_id: str | None = None
    use_inspection: bool | None = None
    inspection_time: int | None = None

    def timer_config(
        self,
        default_use_inspection: bool = True,
        default_inspection_time: int = DEFAULT_INSPECTION_TIME_SEC,
    ) -> TimerConfig:
        """Timer settings for this session, falling back to the global defaults."""
        if self.kind == "case":
            return TimerConfig.case_practice()
        use_inspection = (
            self.use_inspection if self.use_inspection is not None else default_use_inspection
        )
        inspection_time = (
            self.inspection_time if self.inspection_time is not None else default_inspection_time
        )
        return TimerConfig.full_solve(use_inspection, inspection_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "created_at": self.created_at.isoformat(),
            "case_id": self.case_id,
            "use_inspection": self.use_inspection,
            "inspection_time": self.inspection_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=data["id"],
            name=data["name"],
            kind=data.get("kind", "full"),
            created_at=datetime.fromisoformat(data["created_at"]),
            case_id=data.get("case_id"),
            use_inspection=data.get("use_inspection"),
            inspection_time=data.get("inspection_time"),
        )


@dataclass(frozen=True)
class PersonalBest:
    """A stored personal-best record."""

    kind: RecordKind
    time_ms: float
    date: datetime
    session_id: str | None
    solve_ids: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "time_ms": self.time_ms,
            "date": self.date.isoformat(),
            "session_id": self.session_id,
            "solve_ids": list(self.solve_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonalBest:
        return cls(
            kind=RecordKind(data["kind"]),
            time_ms=data["time_ms"],
            date=datetime.fromisoformat(data["date"]),
            session_id=data.get("session_id"),
            solve_ids=tuple(data.get("solve_ids", ())),
        )


class SessionStore:
    """JSON-file persistence for sessions, solves and personal bests."""

    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir: Path = config_dir if config_dir is not None else DEFAULT_CONFIG_DIR
        self._sessions: dict[str, Session] = {}
        self._solves: list[Solve] = []
        self._personal_bests: list[PersonalBest] = []
        self._current_session_id: str | None = None
        self._next_solve_id = 1
        self._load()

    @property
    def path(self) -> Path:
        return self._config_dir / _STATE_FILE

    # -- sessions ------------------------------------------------------------

    def create_session(
        self,
        name: str,
        kind: str = "full",
        *,
        case_id: str | None = None,
        use_inspection: bool | None = None,
        inspection_time: int | None = None,
        make_current: bool = True,
    ) -> Session:
        """Create a session; it becomes the current one unless *make_current* is False."""
        if kind not in SESSION_KINDS:
            raise ValueError(f"session kind must be one of {', '.join(SESSION_KINDS)}, got {kind!r}")
        session = Session(
            id=uuid.uuid4().hex[:8],
            name=name,
            kind=kind,
            case_id=case_id,
            use_inspection=use_inspection,
            inspection_time=inspection_time,
        )
        # Reject bad inspection settings before anything is written.
        session.timer_config()
        self._sessions[session.id] = session
        if make_current or self._current_session_id is None:
            self._current_session_id = session.id
        self._save()
        logger.debug("created session %s (%s)", session.id, name)
        return session

    def sessions(self) -> list[Session]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"no session with id {session_id!r}") from None

    def current_session(self) -> Session:
        """Return the current session, creating a default one on first use."""
        if self._current_session_id is None or self._current_session_id not in self._sessions:
            return self.create_session(_DEFAULT_SESSION_NAME)
        return self._sessions[self._current_session_id]

    def set_current_session(self, session_id: str) -> Session:
        session = self.session(session_id)
        self._current_session_id = session.id
        self._save()
        return session

    def update_inspection(
        self, session_id: str, use_inspection: bool, inspection_time: int
    ) -> Session:
        """Change a session's inspection settings.  Running timers must be rebuilt."""
        session = replace(
            self.session(session_id),
            use_inspection=use_inspection,
            inspection_time=inspection_time,
        )
        session.timer_config()
        self._sessions[session_id] = session
        self._save()
        return session

    def delete_session(self, session_id: str) -> None:
        """Delete a session together with its solves."""
        self.session(session_id)
        del self._sessions[session_id]
        self._solves = [s for s in self._solves if s.session_id != session_id]
        if self._current_session_id == session_id:
            self._current_session_id = None
        self._save()

    def solve_count(self, session_id: str) -> int:
        return sum(1 for s in self._solves if s.session_id == session_id)

    # -- solves --------------------------------------------------------------

    def add_solve(
        self,
        time_ms: int,
        scramble: str = "",
        penalty: Penalty = Penalty.NONE,
        notes: str | None = None,
        session_id: str | None = None,
        case_id: str | None = None,
    ) -> Solve:
        """Append a solve to *session_id* (the current session by default)."""
        session = self.session(session_id) if session_id is not None else self.current_session()
        solve = Solve(
            time_ms=time_ms,
            scramble=scramble,
            penalty=penalty,
            notes=notes,
            id=self._next_solve_id,
            session_id=session.id,
            case_id=case_id if case_id is not None else session.case_id,
        )
        self._next_solve_id += 1
        self._solves.append(solve)
        self._save()
        return solve

    def solves(self, session_id: str | None = None) -> list[Solve]:
        """Solves of *session_id*, or of every session when omitted, oldest first."""
        if session_id is None:
            return list(self._solves)
        return [s for s in self._solves if s.session_id == session_id]

    def all_solves(self) -> list[Solve]:
        return self.solves()

    def solve(self, solve_id: int) -> Solve:
        return self._solves[self._index_of(solve_id)]

    def update_penalty(self, solve_id: int, penalty: Penalty) -> Solve:
        index = self._index_of(solve_id)
        self._solves[index] = self._solves[index].with_penalty(penalty)
        self._save()
        return self._solves[index]

    def update_notes(self, solve_id: int, notes: str | None) -> Solve:
        index = self._index_of(solve_id)
        self._solves[index] = self._solves[index].with_notes(notes)
        self._save()
        return self._solves[index]

    def delete_solve(self, solve_id: int) -> None:
        del self._solves[self._index_of(solve_id)]
        self._save()

    def record_solve(
        self,
        time_ms: int,
        scramble: str = "",
        penalty: Penalty = Penalty.NONE,
        notes: str | None = None,
        session_id: str | None = None,
    ) -> tuple[Solve, StatisticsResult, list[PersonalBestEvent]]:
        """Store a finished solve, then recompute statistics and personal bests.

        New personal bests are persisted and returned as events.
        """
        solve = self.add_solve(time_ms, scramble, penalty, notes, session_id)
        everything = self.all_solves()
        stats = compute_statistics(self.solves(solve.session_id), everything)
        events = detect_personal_bests(stats, lowest_bests(self._personal_bests), everything)
        for event in events:
            self.add_personal_best(event, solve.session_id)
        return solve, stats, events

    # -- personal bests ------------------------------------------------------

    def add_personal_best(self, event: PersonalBestEvent, session_id: str | None) -> PersonalBest:
        record = PersonalBest(
            kind=event.kind,
            time_ms=event.time_ms,
            date=_utcnow(),
            session_id=session_id,
            solve_ids=event.solve_ids,
        )
        self._personal_bests.append(record)
        self._save()
        logger.info("new personal best: %s %.0f ms", event.kind.value, event.time_ms)
        return record

    def personal_bests(self) -> list[PersonalBest]:
        return list(self._personal_bests)

    # -- private helpers -----------------------------------------------------

    def _index_of(self, solve_id: int) -> int:
        for index, solve in enumerate(self._solves):
            if solve.id == solve_id:
                return index
        raise SolveNotFoundError(f"no solve with id {solve_id}")

    # -- persistence ---------------------------------------------------------

    def _save(self) -> None:
        """Write current state to the JSON file with file locking."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "current_session_id": self._current_session_id,
            "next_solve_id": self._next_solve_id,
            "sessions": [s.to_dict() for s in self.sessions()],
            "solves": [s.to_dict() for s in self._solves],
            "personal_bests": [pb.to_dict() for pb in self._personal_bests],
        }
        with open(self.path, "w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            json.dump(data, f, indent=2)
        logger.debug("saved %d solves to %s", len(self._solves), self.path)

    def _load(self) -> None:
        """Load state from the JSON file if it exists."""
        if not self.path.exists():
            return

        with open(self.path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)

        self._sessions = {
            session.id: session
            for session in (Session.from_dict(raw) for raw in data.get("sessions", []))
        }
        self._solves = [Solve.from_dict(raw) for raw in data.get("solves", [])]
        self._personal_bests = [PersonalBest.from_dict(raw) for raw in data.get("personal_bests", [])]
        self._current_session_id = data.get("current_session_id")
        known_max = max((s.id for s in self._solves if s.id is not None), default=0)
        self._next_solve_id = max(data.get("next_solve_id", 1), known_max + 1)

