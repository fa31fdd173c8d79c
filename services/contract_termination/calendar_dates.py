"""
Date-only calendar arithmetic for contract periods.

Every contract boundary is handled as a plain ``datetime.date``: no
time-of-day and no timezone, so "2025-03-10" is the same calendar day on any
server. Inclusive spans count both ends (a same-day period lasts one day).
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from .errors import InvalidRange

DateLike = Union[date, datetime, str]

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize(date_like: Optional[DateLike]) -> Optional[date]:
    """
    Interpret a value as a calendar date.

    Args:
        date_like: date, datetime, "YYYY-MM-DD" or ISO-8601 datetime string

    Returns:
        The calendar date, or None for None/empty input.
        Aware datetimes are converted to UTC before the date is taken.

    Raises:
        ValueError: If a string cannot be parsed
        TypeError: If the value is not date-like
    """
    if date_like is None:
        return None

    if isinstance(date_like, datetime):
        if date_like.tzinfo is not None:
            date_like = date_like.astimezone(timezone.utc)
        return date_like.date()

    if isinstance(date_like, date):
        return date_like

    if isinstance(date_like, str):
        value = date_like.strip()
        if not value:
            return None
        if _DATE_ONLY.match(value):
            return date.fromisoformat(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return normalize(datetime.fromisoformat(value))

    raise TypeError(f"Expected a date-like value, got {type(date_like).__name__}")


def add_days(date_like: DateLike, days: int) -> date:
    """Shift a calendar date by a (possibly negative) number of days."""
    d = normalize(date_like)
    if d is None:
        raise ValueError("Cannot add days to an empty date")
    return d + timedelta(days=days)


def inclusive_span_days(start: DateLike, end: DateLike) -> int:
    """
    Number of calendar days in [start, end], both ends counted.

    Raises:
        InvalidRange: If end precedes start
    """
    s = normalize(start)
    e = normalize(end)
    if s is None or e is None:
        raise ValueError("Both start and end dates are required")
    if e < s:
        raise InvalidRange(s, e)
    return (e - s).days + 1


def to_iso(date_like: Optional[DateLike]) -> Optional[str]:
    """Render a date-like value as YYYY-MM-DD (None stays None)."""
    d = normalize(date_like)
    return d.isoformat() if d is not None else None
