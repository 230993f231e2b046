"""UTC calendar helpers with day-only semantics.

Every comparison in the period engine goes through ``date_only_key`` so that
timeframes carrying different times of day (or offsets) still compare by
calendar date. Naive datetimes are treated as UTC.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
MONTH_ABBREVIATIONS = tuple(name[:3] for name in MONTH_NAMES)

DateLike = datetime | date | str


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC-aware (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: DateLike | None) -> datetime | None:
    """Parse an ISO-8601 timestamp or date into a UTC-aware datetime.

    Accepts ``2026-02-03``, ``2026-02-03T10:00:00Z`` and offset forms.
    Empty values return None.

    Raises:
        ValueError: If the string is not ISO-8601
        TypeError: If the value is neither a string nor a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise TypeError(f"Expected an ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def at_utc(year: int, month: int, day: int) -> datetime:
    """UTC midnight of the given calendar date (month is 1-12)."""
    return datetime(year, month, day, tzinfo=timezone.utc)


def start_of_day(d: datetime) -> datetime:
    """UTC midnight of d's calendar date."""
    d = ensure_utc(d)
    return at_utc(d.year, d.month, d.day)


def end_of_day(d: datetime) -> datetime:
    """23:59:59.999 UTC of d's calendar date."""
    d = ensure_utc(d)
    return datetime(d.year, d.month, d.day, 23, 59, 59, 999000, tzinfo=timezone.utc)


def add_days(d: datetime, days: int) -> datetime:
    return d + timedelta(days=days)


def add_months(d: datetime, months: int) -> datetime:
    """First day of the month that is ``months`` months after d's month."""
    d = ensure_utc(d)
    index = d.year * 12 + (d.month - 1) + months
    return at_utc(index // 12, index % 12 + 1, 1)


def add_years(d: datetime, years: int) -> datetime:
    """Same calendar date ``years`` years later, Feb 29 clamped to Feb 28."""
    d = ensure_utc(d)
    year = d.year + years
    day = min(d.day, calendar.monthrange(year, d.month)[1])
    return d.replace(year=year, day=day)


def date_only_key(d: DateLike) -> str:
    """``YYYY-MM-DD`` of the UTC calendar date of d."""
    if isinstance(d, datetime):
        return ensure_utc(d).strftime("%Y-%m-%d")
    if isinstance(d, date):
        return d.isoformat()
    parsed = parse_timestamp(d)
    if parsed is None:
        raise ValueError("Cannot build a date key from an empty value")
    return parsed.strftime("%Y-%m-%d")


def closed_day_interval(d: DateLike, start: DateLike | None, end: DateLike | None) -> bool:
    """True iff start <= d <= end by calendar date; False when a bound is missing."""
    if not start or not end:
        return False
    day = date_only_key(d)
    return date_only_key(start) <= day <= date_only_key(end)


def iso_string(d: datetime) -> str:
    """Wire form: ``2026-02-01T00:00:00.000Z``."""
    d = ensure_utc(d)
    return d.strftime("%Y-%m-%dT%H:%M:%S.") + f"{d.microsecond // 1000:03d}Z"
