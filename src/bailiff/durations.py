"""Human-oriented duration parsing and formatting for command options and replies."""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "mo": 30 * 24 * 60 * 60,
}

_UNIT_ALIASES = {
    "sec": "s",
    "secs": "s",
    "second": "s",
    "seconds": "s",
    "min": "m",
    "mins": "m",
    "minute": "m",
    "minutes": "m",
    "hr": "h",
    "hrs": "h",
    "hour": "h",
    "hours": "h",
    "day": "d",
    "days": "d",
    "week": "w",
    "weeks": "w",
    "month": "mo",
    "months": "mo",
}

_TOKEN_RE = re.compile(r"([0-9]+)\s*([a-z]+)")
_SECONDS_RE = re.compile(r"[0-9]+")

_MAX_SECONDS = int(timedelta.max.total_seconds())
_MAX_DIGITS = len(str(_MAX_SECONDS))

_FORMAT_UNITS = (
    ("week", 7 * 24 * 60 * 60),
    ("day", 24 * 60 * 60),
    ("hour", 60 * 60),
    ("minute", 60),
    ("second", 1),
)


class DurationError(ValueError):
    pass


def parse_duration(text: str) -> timedelta:
    """Parse `90`, `30s`, `1h30m`, `2 days`, `1mo` into a timedelta.

    A bare number is read as seconds. Months count as 30 days.
    """
    cleaned = text.strip().lower()
    if not cleaned:
        raise DurationError("empty duration")
    if _SECONDS_RE.fullmatch(cleaned):
        return _to_timedelta(_to_int(cleaned, text), text)

    total = 0
    pos = 0
    for match in _TOKEN_RE.finditer(cleaned):
        if cleaned[pos : match.start()].strip(" ,"):
            raise DurationError(f"not a duration: {text!r}")
        amount, unit = match.groups()
        unit = _UNIT_ALIASES.get(unit, unit)
        if unit not in _UNIT_SECONDS:
            raise DurationError(f"unknown duration unit {unit!r} in {text!r}")
        total += _to_int(amount, text) * _UNIT_SECONDS[unit]
        pos = match.end()
    if pos == 0 or cleaned[pos:].strip():
        raise DurationError(f"not a duration: {text!r}")
    return _to_timedelta(total, text)


def _to_int(digits: str, text: str) -> int:
    if len(digits) > _MAX_DIGITS:
        raise DurationError(f"duration is too long: {text!r}")
    return int(digits)


def _to_timedelta(seconds: int, text: str) -> timedelta:
    if seconds > _MAX_SECONDS:
        raise DurationError(f"duration is too long: {text!r}")
    return timedelta(seconds=seconds)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_duration(seconds: float, *, max_units: int = 2) -> str:
    """Render `3725` as `1 hour 2 minutes`; sub-second waits round up to 1 second."""
    remaining = max(0, int(-(-seconds // 1)))
    if remaining == 0:
        return "0 seconds"
    parts: list[str] = []
    for word, size in _FORMAT_UNITS:
        if remaining >= size:
            count, remaining = divmod(remaining, size)
            parts.append(_plural(count, word))
            if len(parts) == max_units:
                break
    return " ".join(parts)
