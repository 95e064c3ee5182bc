"""Human-friendly time references for filtering and displaying history.

Accepted forms for ``log --since``:
- ISO dates and datetimes: "2025-01-15", "2025-01-15T14:30:00"
- Relative: "30 minutes ago", "2 weeks ago", "3 months ago"
- Named: "today", "yesterday", "last week", "last month", "last year"
"""

import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .constants import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)

_AGO_PATTERN = re.compile(r"^(\d+)\s*(second|minute|hour|day|week|month|year)s?\s+ago$")

_NAMED_OFFSETS = {
    "last week": relativedelta(weeks=1),
    "last month": relativedelta(months=1),
    "last year": relativedelta(years=1),
}

_DISPLAY_UNITS = [
    (SECONDS_PER_YEAR, "year"),
    (SECONDS_PER_MONTH, "month"),
    (SECONDS_PER_WEEK, "week"),
    (SECONDS_PER_DAY, "day"),
    (SECONDS_PER_HOUR, "hour"),
    (SECONDS_PER_MINUTE, "minute"),
]


def _start_of_day(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_time_reference(ref: str, now: datetime | None = None) -> datetime:
    """Parse a time reference into a timezone-aware UTC datetime.

    Args:
        ref: Time reference string
        now: Reference point for relative forms (default: current UTC time)

    Raises:
        ValueError: If the reference cannot be parsed
    """
    if now is None:
        now = datetime.now(timezone.utc)

    text = ref.strip().lower()

    if text == "today":
        return _start_of_day(now)
    if text == "yesterday":
        return _start_of_day(now - timedelta(days=1))
    if text in _NAMED_OFFSETS:
        return now - _NAMED_OFFSETS[text]

    match = _AGO_PATTERN.match(text)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        return now - relativedelta(**{f"{unit}s": amount})

    try:
        parsed = dateparser.isoparse(ref.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Cannot parse time reference: {ref}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime relative to now, e.g. "3 hours ago"."""
    if now is None:
        now = datetime.now(timezone.utc)

    seconds = int((now - dt).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < SECONDS_PER_MINUTE:
        return "just now"

    for size, unit in _DISPLAY_UNITS:
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {unit}{'s' if amount != 1 else ''} ago"
    return "just now"
