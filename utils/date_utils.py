"""
Calendar-day helpers.

Summary rows are keyed by the UTC calendar day of the event. Every caller
normalizes through here so two timestamps on the same UTC day always map
to the same key.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

DayLike = Union[date, datetime, str]


def to_utc_day(value: DayLike) -> date:
    """
    Normalize a date, datetime or ISO string to its UTC calendar day.

    Naive datetimes are taken as UTC. Aware datetimes are converted first,
    so 2025-12-02T23:30-05:00 lands on 2025-12-03.

    Raises:
        ValueError: If the string is not an ISO date or datetime
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    raise ValueError(f"Unsupported day value: {value!r}")


def day_bounds(day: date) -> tuple[str, str]:
    """Return [start, end) ISO timestamps covering one UTC day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1)
    return start.isoformat(), end.isoformat()