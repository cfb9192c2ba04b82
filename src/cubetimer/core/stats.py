"""Statistics engine: WCA-style averages, bests and personal-best detection.

Every function here is pure.  Histories are ordered oldest to newest and
are never mutated.  DNF results are represented as ``math.inf``; a
statistic that cannot be computed (too few solves, too many DNFs) is
``None``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Protocol, Sequence

from cubetimer.core.solve import Solve, effective_time

AVERAGE_SIZES = (5, 12, 50, 100)

# Below this window size no trimming happens and any DNF sinks the average.
_TRIM_THRESHOLD = 5


class RecordKind(Enum):
    """Statistic a personal best can be set for."""

    SINGLE = "single"
    AO5 = "ao5"
    AO12 = "ao12"
    AO50 = "ao50"
    AO100 = "ao100"

    @property
    def size(self) -> int:
        """Number of solves the statistic spans."""
        return 1 if self == RecordKind.SINGLE else int(self.value[2:])

    @property
    def label(self) -> str:
        return "Single" if self == RecordKind.SINGLE else f"Average of {self.size}"


DEFAULT_THRESHOLDS: Mapping[RecordKind, int] = {kind: kind.size for kind in RecordKind}


@dataclass(frozen=True)
class StatisticsResult:
    """Current-session averages alongside all-time bests."""

    current_single: float | None = None
    ao5: float | None = None
    ao12: float | None = None
    ao50: float | None = None
    ao100: float | None = None
    best_single: float | None = None
    best_ao5: float | None = None
    best_ao12: float | None = None
    best_ao50: float | None = None
    best_ao100: float | None = None

    def current(self, kind: RecordKind) -> float | None:
        if kind == RecordKind.SINGLE:
            return self.current_single
        return getattr(self, kind.value)

    def best(self, kind: RecordKind) -> float | None:
        return getattr(self, f"best_{kind.value}")


@dataclass(frozen=True)
class PersonalBestEvent:
    """A statistic that beat the stored personal best."""

    kind: RecordKind
    time_ms: float
    solve_ids: tuple[int, ...] = ()


class _HasRecord(Protocol):
    kind: RecordKind
    time_ms: float


# ---------------------------------------------------------------------------
# Averages
# ---------------------------------------------------------------------------


def times_of(history: Sequence[Solve]) -> list[float]:
    """Effective times of *history*, DNFs as ``inf``."""
    return [effective_time(solve) for solve in history]


def window_average(times: Sequence[float], n: int) -> float | None:
    """Average of the first *n* entries of *times*.

    For ``n >= 5`` the best and worst results are dropped first; a single
    DNF can be dropped as the worst, two or more make the average DNF.
    Below five every result counts and any DNF makes the average DNF.
    """
    if n <= 0 or len(times) < n:
        return None
    window = list(times[:n])
    dnf_count = sum(1 for t in window if math.isinf(t))
    if dnf_count > 1:
        return None

    if n >= _TRIM_THRESHOLD:
        trimmed = sorted(window)[1:-1]
        if any(math.isinf(t) for t in trimmed):
            return None
        return sum(trimmed) / len(trimmed)

    if dnf_count > 0:
        return None
    return sum(window) / n


def current_average(history: Sequence[Solve], n: int) -> float | None:
    """Average of the most recent *n* solves."""
    if n <= 0 or len(history) < n:
        return None
    return window_average(times_of(history[-n:]), n)


def best_average_window(history: Sequence[Solve], n: int) -> tuple[int, float] | None:
    """Return ``(start_index, average)`` of the best *n*-solve window.

    Windows are scanned oldest first and only a strictly lower average
    replaces the current best, so ties go to the earliest window.
    """
    if n <= 0 or len(history) < n:
        return None
    times = times_of(history)
    best: tuple[int, float] | None = None
    for start in range(len(times) - n + 1):
        average = window_average(times[start : start + n], n)
        if average is not None and (best is None or average < best[1]):
            best = (start, average)
    return best


def best_average(history: Sequence[Solve], n: int) -> float | None:
    """Lowest average over every contiguous *n*-solve window."""
    window = best_average_window(history, n)
    return window[1] if window is not None else None


# ---------------------------------------------------------------------------
# Singles
# ---------------------------------------------------------------------------


def best_single_solve(history: Sequence[Solve]) -> Solve | None:
    """Earliest solve holding the lowest non-DNF time."""
    best: Solve | None = None
    for solve in history:
        if solve.is_dnf:
            continue
        if best is None or effective_time(solve) < effective_time(best):
            best = solve
    return best


def best_single(history: Sequence[Solve]) -> float | None:
    solve = best_single_solve(history)
    return effective_time(solve) if solve is not None else None


# ---------------------------------------------------------------------------
# Session statistics
# ---------------------------------------------------------------------------


def compute_statistics(
    session_history: Sequence[Solve],
    all_history: Sequence[Solve] | None = None,
) -> StatisticsResult:
    """Current values from *session_history*, bests from *all_history*.

    Without *all_history* the bests come from the session itself.  An empty
    session still gets its all-time bests.
    """
    session = tuple(session_history)
    overall = tuple(all_history) if all_history is not None else session

    return StatisticsResult(
        current_single=best_single(session),
        ao5=current_average(session, 5),
        ao12=current_average(session, 12),
        ao50=current_average(session, 50),
        ao100=current_average(session, 100),
        best_single=best_single(overall),
        best_ao5=best_average(overall, 5),
        best_ao12=best_average(overall, 12),
        best_ao50=best_average(overall, 50),
        best_ao100=best_average(overall, 100),
    )


# ---------------------------------------------------------------------------
# Personal bests
# ---------------------------------------------------------------------------


def lowest_bests(records: Iterable[_HasRecord]) -> dict[RecordKind, float]:
    """Reduce stored personal-best records to the lowest time per kind."""
    bests: dict[RecordKind, float] = {}
    for record in records:
        current = bests.get(record.kind)
        if current is None or record.time_ms < current:
            bests[record.kind] = record.time_ms
    return bests


def _contributing_ids(history: Sequence[Solve], kind: RecordKind) -> tuple[int, ...]:
    if kind == RecordKind.SINGLE:
        solves: Sequence[Solve] = [s for s in [best_single_solve(history)] if s is not None]
    else:
        window = best_average_window(history, kind.size)
        if window is None:
            return ()
        start = window[0]
        solves = history[start : start + kind.size]
    return tuple(solve.id for solve in solves if solve.id is not None)


def detect_personal_bests(
    new_stats: StatisticsResult,
    stored_bests: Mapping[RecordKind, float],
    history: Sequence[Solve],
    thresholds: Mapping[RecordKind, int] = DEFAULT_THRESHOLDS,
) -> list[PersonalBestEvent]:
    """Return the statistics in *new_stats* that beat *stored_bests*.

    A kind is only considered once *history* holds at least
    ``thresholds[kind]`` solves, and only a strictly lower time counts.
    Nothing is persisted here.
    """
    events: list[PersonalBestEvent] = []
    for kind in RecordKind:
        value = new_stats.best(kind)
        if value is None:
            continue
        if len(history) < thresholds.get(kind, kind.size):
            continue
        stored = stored_bests.get(kind)
        if stored is not None and not value < stored:
            continue
        events.append(PersonalBestEvent(kind, value, _contributing_ids(history, kind)))
    return events


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeDistribution:
    min: float | None = None
    max: float | None = None
    median: float | None = None
    q1: float | None = None
    q3: float | None = None
    p90: float | None = None
    p95: float | None = None
    p99: float | None = None


def _valid(times: Iterable[float]) -> list[float]:
    return [t for t in times if not math.isinf(t)]


def standard_deviation(times: Sequence[float]) -> float | None:
    """Population standard deviation of the non-DNF times."""
    valid = _valid(times)
    if len(valid) < 2:
        return None
    mean = sum(valid) / len(valid)
    variance = sum((t - mean) ** 2 for t in valid) / len(valid)
    return math.sqrt(variance)


def _percentile(ordered: list[float], percentile: float) -> float:
    index = percentile / 100 * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def time_distribution(times: Sequence[float]) -> TimeDistribution:
    """Percentile summary of the non-DNF times (linear interpolation)."""
    ordered = sorted(_valid(times))
    if not ordered:
        return TimeDistribution()
    return TimeDistribution(
        min=ordered[0],
        max=ordered[-1],
        median=_percentile(ordered, 50),
        q1=_percentile(ordered, 25),
        q3=_percentile(ordered, 75),
        p90=_percentile(ordered, 90),
        p95=_percentile(ordered, 95),
        p99=_percentile(ordered, 99),
    )


def solve_count_label(history: Sequence[Solve]) -> str:
    """``"12"``, or ``"11/12"`` when some of the solves are DNF."""
    dnf_count = sum(1 for solve in history if solve.is_dnf)
    if dnf_count:
        return f"{len(history) - dnf_count}/{len(history)}"
    return str(len(history))
