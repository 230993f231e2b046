"""Match a feature end date to the release whose timeframe contains it."""

from __future__ import annotations

from collections.abc import Iterable

from release_sync.periods.calendar_math import DateLike, closed_day_interval
from release_sync.releases.models import ReleaseRecord


def find_matching_release(end_date: DateLike, releases: Iterable[ReleaseRecord]) -> ReleaseRecord | None:
    """Return the first release (in the given order) whose closed day interval contains end_date.

    Releases without a start or end never match. None means the catalog has a
    gap for this date and needs seeding.
    """
    for release in releases:
        if closed_day_interval(end_date, release.start, release.end):
            return release
    return None
