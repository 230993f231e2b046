"""Calendar period generators.

Each generator is pure: given a UTC range it returns the ordered, gap-free,
non-overlapping periods that cover it. Period bounds are UTC midnight of the
first and last day (the day-only form stored on release timeframes).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from release_sync.periods.calendar_math import (
    MONTH_ABBREVIATIONS,
    MONTH_NAMES,
    add_days,
    add_months,
    at_utc,
    end_of_day,
    ensure_utc,
    start_of_day,
)


class Granularity(StrEnum):
    """Release cadence, one release group per value."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def store_label(self) -> str:
        """Advisory timeframe granularity sent to the release store."""
        return _STORE_LABELS[self]


_STORE_LABELS = {
    Granularity.WEEKLY: "day",
    Granularity.MONTHLY: "month",
    Granularity.QUARTERLY: "quarter",
    Granularity.YEARLY: "year",
}


@dataclass(frozen=True)
class Period:
    """A named calendar period, both bounds inclusive by day."""

    name: str
    start: datetime
    end: datetime


def normalize_anchor_month(value: int | str | None) -> int:
    """Clamp a quarter anchor month into 1..12; unusable values fall back to January."""
    try:
        month = int(value) if value is not None else 1
    except (TypeError, ValueError):
        return 1
    if month == 0:
        return 1
    return max(1, min(12, month))


def _first_monday_of_month(d: datetime) -> datetime:
    first = at_utc(d.year, d.month, 1)
    return add_days(first, (7 - first.weekday()) % 7)


def build_weekly_periods(range_start: datetime, range_end: datetime) -> list[Period]:
    """Monday-Sunday weeks from the Monday on/before range_start.

    Names carry the week-of-month index of the Monday, counted from the first
    Monday of that month: ``"Jan week 2 2026"``.
    """
    range_start = ensure_utc(range_start)
    monday = start_of_day(add_days(range_start, -range_start.weekday()))
    boundary = end_of_day(range_end)

    periods: list[Period] = []
    while monday <= boundary:
        sunday = add_days(monday, 6)
        week_number = (monday - _first_monday_of_month(monday)).days // 7 + 1
        name = f"{MONTH_ABBREVIATIONS[monday.month - 1]} week {week_number} {monday.year}"
        periods.append(Period(name=name, start=monday, end=sunday))
        monday = add_days(monday, 7)
    return periods


def build_monthly_periods(range_start: datetime, range_end: datetime) -> list[Period]:
    """One period per calendar month, month of range_start through month of range_end."""
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    cursor = at_utc(range_start.year, range_start.month, 1)
    last = at_utc(range_end.year, range_end.month, 1)

    periods: list[Period] = []
    while cursor <= last:
        next_month = add_months(cursor, 1)
        name = f"{MONTH_NAMES[cursor.month - 1]} {cursor.year}"
        periods.append(Period(name=name, start=cursor, end=add_days(next_month, -1)))
        cursor = next_month
    return periods


def quarter_start_for(d: datetime, anchor_month: int = 1) -> datetime:
    """First day of the quarter containing d, with quarters aligned to anchor_month."""
    d = ensure_utc(d)
    offset = (d.month - anchor_month) % 3
    return add_months(at_utc(d.year, d.month, 1), -offset)


def quarter_index(quarter_start: datetime, anchor_month: int = 1) -> int:
    """1-based quarter number relative to the anchor month (always 1..4)."""
    return (quarter_start.month - anchor_month) % 12 // 3 + 1


def build_quarterly_periods(
    range_start: datetime,
    range_end: datetime,
    anchor_month: int | str | None = 1,
) -> list[Period]:
    """Three-month periods aligned to a fiscal anchor month.

    The name uses the calendar year of the quarter start, so with a non-January
    anchor ``Q1`` of a fiscal year may carry the previous calendar year.
    """
    anchor = normalize_anchor_month(anchor_month)
    range_end = ensure_utc(range_end)
    quarter_start = quarter_start_for(range_start, anchor)
    boundary = at_utc(range_end.year, range_end.month, 1)

    periods: list[Period] = []
    while quarter_start <= boundary:
        next_start = add_months(quarter_start, 3)
        name = f"Q{quarter_index(quarter_start, anchor)} {quarter_start.year}"
        periods.append(Period(name=name, start=quarter_start, end=add_days(next_start, -1)))
        quarter_start = next_start
    return periods


def build_yearly_periods(range_start: datetime, range_end: datetime) -> list[Period]:
    """Jan 1 - Dec 31 for every calendar year touched by the range."""
    first_year = ensure_utc(range_start).year
    last_year = ensure_utc(range_end).year
    return [
        Period(name=str(year), start=at_utc(year, 1, 1), end=at_utc(year, 12, 31))
        for year in range(first_year, last_year + 1)
    ]


def build_periods(
    granularity: Granularity,
    range_start: datetime,
    range_end: datetime,
    anchor_month: int | str | None = 1,
) -> list[Period]:
    """Dispatch to the generator for ``granularity``."""
    if granularity == Granularity.WEEKLY:
        return build_weekly_periods(range_start, range_end)
    if granularity == Granularity.MONTHLY:
        return build_monthly_periods(range_start, range_end)
    if granularity == Granularity.QUARTERLY:
        return build_quarterly_periods(range_start, range_end, anchor_month)
    if granularity == Granularity.YEARLY:
        return build_yearly_periods(range_start, range_end)
    raise ValueError(f"Unknown granularity: {granularity}")
