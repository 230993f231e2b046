"""Release catalog seeding.

Keeps every release group populated ahead of need: generated periods are
compared with the existing catalog by day keys and only missing periods are
created. Re-running is safe; nothing is ever duplicated by a single run.

Failure isolation:
- one period failing to create never stops the others
- one group failing to fetch never stops the other groups
- only when every configured group is unavailable does seeding fail as a whole

Two concurrent seed runs can both create the same missing period. There is
no locking against that.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from loguru import logger

from release_sync.periods.calendar_math import (
    add_years,
    date_only_key,
    end_of_day,
    iso_string,
    start_of_day,
)
from release_sync.periods.generators import Granularity, Period, build_periods
from release_sync.releases.config import ReleaseSyncConfig
from release_sync.releases.errors import AllGroupsUnavailableError
from release_sync.releases.models import ReleaseRecord
from release_sync.releases.store import ReleaseStore


class SeedStatus(StrEnum):
    """Outcome of seeding one group, or of the whole run."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class FailedCreation:
    """A period that could not be created, with the store's error message."""

    name: str
    error: str


@dataclass
class SeedResult:
    created: list[ReleaseRecord] = field(default_factory=list)
    failed: list[FailedCreation] = field(default_factory=list)


@dataclass
class GroupSeedSummary:
    """Seeding outcome for one granularity."""

    granularity: Granularity
    group_id: str | None
    status: SeedStatus
    created: list[ReleaseRecord] = field(default_factory=list)
    failed: list[FailedCreation] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "created": len(self.created),
            "failed": len(self.failed),
            "error": self.error,
        }


@dataclass
class SeedReport:
    """Machine-readable summary of one seeding run."""

    status: SeedStatus
    range_start: datetime
    range_end: datetime
    yearly_range_end: datetime
    groups: dict[Granularity, GroupSeedSummary]

    @property
    def created(self) -> list[ReleaseRecord]:
        return [release for group in self.groups.values() for release in group.created]

    @property
    def failed(self) -> list[FailedCreation]:
        return [failure for group in self.groups.values() for failure in group.failed]

    @property
    def successful_groups(self) -> int:
        return sum(
            1 for group in self.groups.values() if group.status in (SeedStatus.SUCCESS, SeedStatus.PARTIAL_SUCCESS)
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": str(self.status),
            "range_start": iso_string(self.range_start),
            "range_end": iso_string(self.range_end),
            "yearly_range_end": iso_string(self.yearly_range_end),
            "summary": {
                "total_groups": len(self.groups),
                "successful_groups": self.successful_groups,
                "failed_groups": len(self.groups) - self.successful_groups,
                "created_count": len(self.created),
                "failed_creations": len(self.failed),
            },
            "groups": {str(granularity): group.to_dict() for granularity, group in self.groups.items()},
            "created_names": [release.name for release in self.created],
        }
        if self.failed:
            payload["failed_creations"] = [{"name": f.name, "error": f.error} for f in self.failed]
        return payload


def release_exists(existing: Iterable[ReleaseRecord], period: Period) -> bool:
    """True if a release with the same ``[start, end]`` calendar days exists."""
    keys = (date_only_key(period.start), date_only_key(period.end))
    return any(release.day_keys() == keys for release in existing)


async def seed_group(
    store: ReleaseStore,
    group_id: str | None,
    periods: list[Period],
    existing: list[ReleaseRecord],
    granularity: Granularity,
) -> SeedResult:
    """Create the periods missing from ``existing``, furthest-future first.

    Args:
        store: Release store to create releases in
        group_id: Release group receiving the releases
        periods: Generated periods for this granularity
        existing: Releases already in the group
        granularity: Granularity of the group (sent as the store's advisory label)

    Returns:
        SeedResult with the created releases and the per-period failures
    """
    result = SeedResult()
    if not group_id:
        logger.warning(f"[SEED] Skipped {granularity}: release group has no ID (check environment variables)")
        return result

    known = list(existing)
    for period in sorted(periods, key=lambda p: p.start, reverse=True):
        if release_exists(known, period):
            logger.info(f"[SEED] Exists: {period.name} ({iso_string(period.start)} - {iso_string(period.end)})")
            continue

        try:
            created = await store.create_release(
                name=period.name,
                group_id=group_id,
                start=period.start,
                end=period.end,
                granularity=granularity.store_label,
            )
        except Exception as e:
            logger.error(f'[SEED] Failed to create release "{period.name}": {e}')
            result.failed.append(FailedCreation(name=period.name, error=str(e)))
            continue

        if not created.name:
            created = created.model_copy(update={"name": period.name})
        if created.start is None or created.end is None:
            created = created.model_copy(update={"start": created.start or period.start, "end": created.end or period.end})
        result.created.append(created)
        known.append(created)
        logger.info(f"[SEED] Created: {created.name} -> [{iso_string(created.start)} ... {iso_string(created.end)}]")

    return result


def _overall_status(groups: Iterable[GroupSeedSummary]) -> SeedStatus:
    statuses = [group.status for group in groups]
    if all(status == SeedStatus.SUCCESS for status in statuses):
        return SeedStatus.SUCCESS
    if any(status in (SeedStatus.SUCCESS, SeedStatus.PARTIAL_SUCCESS) for status in statuses):
        return SeedStatus.PARTIAL_SUCCESS
    return SeedStatus.FAILED


async def seed_all(
    store: ReleaseStore,
    config: ReleaseSyncConfig,
    now: datetime | None = None,
) -> SeedReport:
    """Seed every configured release group from today through its horizon.

    Catalogs are fetched concurrently, then groups are seeded one after another.

    Raises:
        AllGroupsUnavailableError: If groups are configured but none of their
            catalogs could be fetched
    """
    range_start = start_of_day(now or datetime.now(timezone.utc))
    range_end = end_of_day(add_years(range_start, config.horizon_years))
    yearly_range_end = end_of_day(add_years(range_start, config.yearly_horizon_years))

    groups: dict[Granularity, GroupSeedSummary] = {}
    configured: list[Granularity] = []
    for granularity in Granularity:
        group_id = config.group_id(granularity)
        if group_id:
            configured.append(granularity)
        else:
            groups[granularity] = GroupSeedSummary(
                granularity=granularity,
                group_id=None,
                status=SeedStatus.SKIPPED,
                error="Missing release group ID",
            )
            logger.warning(f"[SEED] Skipped {granularity}: missing release group ID")

    fetch_results = await asyncio.gather(
        *(store.list_releases_for_group(config.group_id(granularity)) for granularity in configured),
        return_exceptions=True,
    )

    catalogs: dict[Granularity, list[ReleaseRecord]] = {}
    for granularity, fetched in zip(configured, fetch_results, strict=True):
        if isinstance(fetched, BaseException):
            if not isinstance(fetched, Exception):
                raise fetched
            groups[granularity] = GroupSeedSummary(
                granularity=granularity,
                group_id=config.group_id(granularity),
                status=SeedStatus.FAILED,
                error=str(fetched) or type(fetched).__name__,
            )
            logger.warning(f"[SEED] Skipped {granularity}: {groups[granularity].error}")
        else:
            catalogs[granularity] = fetched
            logger.debug(f"[SEED] Fetched {len(fetched)} existing {granularity} releases")

    if configured and not catalogs:
        logger.error("[SEED] No release groups available for seeding")
        raise AllGroupsUnavailableError(
            groups={str(g): {"status": str(groups[g].status), "error": groups[g].error} for g in Granularity},
        )

    for granularity in Granularity:
        if granularity not in catalogs:
            continue
        end = yearly_range_end if granularity == Granularity.YEARLY else range_end
        periods = build_periods(granularity, range_start, end, config.quarter_anchor_month)
        group_id = config.group_id(granularity)
        logger.info(f"[SEED] Seeding {granularity} releases ({len(periods)} periods)...")
        result = await seed_group(store, group_id, periods, catalogs[granularity], granularity)
        groups[granularity] = GroupSeedSummary(
            granularity=granularity,
            group_id=group_id,
            status=SeedStatus.PARTIAL_SUCCESS if result.failed else SeedStatus.SUCCESS,
            created=result.created,
            failed=result.failed,
        )

    ordered = {granularity: groups[granularity] for granularity in Granularity}
    report = SeedReport(
        status=_overall_status(ordered.values()),
        range_start=range_start,
        range_end=range_end,
        yearly_range_end=yearly_range_end,
        groups=ordered,
    )
    logger.info(
        f"[SEED] Seeding complete: {report.successful_groups}/{len(ordered)} groups seeded, "
        f"{len(report.created)} releases created, {len(report.failed)} failures"
    )
    return report
