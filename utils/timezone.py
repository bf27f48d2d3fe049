"""UTC-everywhere time handling and duration strings."""

import re
from datetime import datetime, timedelta, timezone

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w)?\s*$")

_UNITS = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def from_timestamp(seconds: int | float) -> datetime:
    """Convert a Unix timestamp (e.g. a JWT NumericDate) to a UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_duration(value: str | int) -> timedelta:
    """
    Parse a compact duration string such as "15m", "7d" or "3600".

    Bare integers are seconds. Supported units: ms, s, m, h, d, w.

    Raises ValueError for anything else, including zero-length durations.
    """
    if isinstance(value, int):
        duration = timedelta(seconds=value)
    else:
        match = _DURATION_PATTERN.match(value)
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        duration = timedelta(**{_UNITS[unit or "s"]: int(amount)})

    if duration <= timedelta(0):
        raise ValueError(f"Duration must be positive: {value!r}")
    return duration
