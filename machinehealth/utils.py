"""
Utilities for durations and timestamps carried by cluster objects.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .errors import InvalidTimeoutError

# Go time.ParseDuration units
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as "300s", "1h30m" or "1.5h"."""
    if not isinstance(value, str) or not value:
        raise InvalidTimeoutError(f"Invalid duration: {value!r}")

    text = value
    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise InvalidTimeoutError(f"Invalid duration: {value!r}")
        number, unit = match.groups()
        total += _DURATION_UNITS[unit] * float(number)
        pos = match.end()

    if pos == 0:
        raise InvalidTimeoutError(f"Invalid duration: {value!r}")
    return timedelta(seconds=total * sign)


def min_duration(durations: Iterable[timedelta]) -> timedelta:
    """Return the smallest duration, or zero for an empty collection."""
    return min(durations, default=timedelta(0))


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
