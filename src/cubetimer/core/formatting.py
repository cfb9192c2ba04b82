"""Time formatting and parsing helpers."""

from __future__ import annotations

import math
import re

_MINUTES_RE = re.compile(r"^(\d+):(\d{1,2})\.(\d{1,2})$")
_SECONDS_RE = re.compile(r"^(\d+)\.(\d{1,2})$")
_INTEGER_RE = re.compile(r"^(\d+)$")


def format_time(time_ms: float) -> str:
    """Format milliseconds as ``S.CC`` or ``M:SS.CC``, truncating to centiseconds."""
    if not time_ms:
        return "0.00"
    if math.isinf(time_ms):
        return "DNF"
    total = int(time_ms)
    minutes = total // 60000
    seconds = (total % 60000) // 1000
    centis = (total % 1000) // 10
    if minutes > 0:
        return f"{minutes}:{seconds:02d}.{centis:02d}"
    return f"{seconds}.{centis:02d}"


def format_stat(time_ms: float | None) -> str:
    """Format a statistic, using ``--`` when there is not enough data."""
    if time_ms is None:
        return "--"
    return format_time(time_ms)


def format_display_time(time_ms: float) -> str:
    """Format a running clock value, rounded to the nearest centisecond."""
    return format_time(round(time_ms / 10) * 10)


def parse_time_string(text: str) -> float | None:
    """Parse user input such as ``8.45``, ``1:23.45``, ``12`` or ``DNF``.

    Returns milliseconds, ``math.inf`` for DNF, or ``None`` when the text
    is not a recognisable time.
    """
    if not text or not text.strip():
        return None
    value = text.strip().upper()
    if value == "DNF":
        return math.inf

    match = _MINUTES_RE.match(value)
    if match:
        minutes, seconds = int(match.group(1)), int(match.group(2))
        centis = int(match.group(3).ljust(2, "0"))
        return float((minutes * 60 + seconds) * 1000 + centis * 10)

    match = _SECONDS_RE.match(value)
    if match:
        centis = int(match.group(2).ljust(2, "0"))
        return float(int(match.group(1)) * 1000 + centis * 10)

    match = _INTEGER_RE.match(value)
    if match:
        return float(int(match.group(1)) * 1000)
    return None
