"""Assignment reconciliation.

Keeps a feature linked to exactly one release per granularity: the release
whose timeframe contains the feature's end date (day-only, both bounds
inclusive). Each granularity is handled on its own, so a missing group, an
unreachable catalog or a gap in one cadence never blocks the others.

Catalogs and the feature's current links are cached for one reconciliation
run only; nothing is shared between features or requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger

from release_sync.periods.calendar_math import date_only_key
from release_sync.periods.generators import Granularity
from release_sync.periods.matcher import find_matching_release
from release_sync.releases.config import ReleaseSyncConfig
from release_sync.releases.models import Feature, ReleaseRecord
from release_sync.releases.store import ReleaseStore

DEBUG_CANDIDATE_LIMIT = 5


class AssignmentStatus(StrEnum):
    ASSIGNED = "assigned"
    NO_MATCH = "no_match"
    SKIPPED = "skipped"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass
class GroupReconciliation:
    """Outcome of reconciling one feature within one granularity."""

    granularity: Granularity
    status: AssignmentStatus
    release_id: str | None = None
    release_name: str | None = None
    removed_release_ids: list[str] = field(default_factory=list)
    removal_errors: list[str] = field(default_factory=list)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "release_id": self.release_id,
            "release_name": self.release_name,
            "removed_release_ids": self.removed_release_ids,
            "removal_errors": self.removal_errors,
            "reason": self.reason,
        }


@dataclass
class FeatureReconciliation:
    feature_id: str
    groups: dict[Granularity, GroupReconciliation]

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_id": self.feature_id,
            "groups": {str(granularity): result.to_dict() for granularity, result in self.groups.items()},
        }


@dataclass
class ReconciliationRun:
    """Per-run caches: one catalog fetch per group, one link listing per feature."""

    catalogs: dict[str, list[ReleaseRecord]] = field(default_factory=dict)
    assigned_release_ids: dict[str, list[str]] = field(default_factory=dict)


async def _load_catalog(store: ReleaseStore, group_id: str, run: ReconciliationRun) -> list[ReleaseRecord]:
    if group_id not in run.catalogs:
        run.catalogs[group_id] = await store.list_releases_for_group(group_id)
    return run.catalogs[group_id]


async def _load_assigned_ids(store: ReleaseStore, feature_id: str, run: ReconciliationRun) -> list[str]:
    if feature_id not in run.assigned_release_ids:
        run.assigned_release_ids[feature_id] = await store.list_assigned_release_ids(feature_id)
    return run.assigned_release_ids[feature_id]


async def _remove_stale_assignments(
    store: ReleaseStore,
    feature: Feature,
    target: ReleaseRecord,
    group_id: str,
    catalog: list[ReleaseRecord],
    run: ReconciliationRun,
    outcome: GroupReconciliation,
) -> None:
    """Unlink every other release of the same group; failures are only logged."""
    label = outcome.granularity
    try:
        assigned_ids = await _load_assigned_ids(store, feature.id, run)
    except Exception as e:
        logger.warning(f"[RECONCILE] {label}: could not list current links for feature {feature.id} ({e})")
        outcome.removal_errors.append(str(e))
        return

    group_release_ids = {release.id for release in catalog}
    for release_id in assigned_ids:
        if release_id == target.id or release_id not in group_release_ids:
            continue
        try:
            await store.set_assignment(feature.id, release_id, False, group_id)
        except Exception as e:
            logger.warning(f"[RECONCILE] {label}: failed to remove stale link {feature.id} -> {release_id} ({e})")
            outcome.removal_errors.append(f"{release_id}: {e}")
            continue
        outcome.removed_release_ids.append(release_id)
        logger.info(f"[RECONCILE] {label}: removed stale assignment {release_id}")

    run.assigned_release_ids[feature.id] = [
        release_id for release_id in assigned_ids if release_id not in outcome.removed_release_ids
    ]
    if target.id not in run.assigned_release_ids[feature.id]:
        run.assigned_release_ids[feature.id].append(target.id)


async def reconcile_group(
    store: ReleaseStore,
    feature: Feature,
    granularity: Granularity,
    group_id: str | None,
    run: ReconciliationRun | None = None,
) -> GroupReconciliation:
    """Assign the feature to the release of ``group_id`` that contains its end date.

    Args:
        store: Release store
        feature: Feature being reconciled
        granularity: Granularity of the group (used for logging and results)
        group_id: Release group id, None when not configured
        run: Caches for the current reconciliation run

    Returns:
        GroupReconciliation describing what happened; never raises for
        store failures.
    """
    run = run or ReconciliationRun()

    if feature.timeframe_end is None:
        logger.warning(f"[RECONCILE] {granularity}: feature {feature.id} has no timeframe end; skipping assignment")
        return GroupReconciliation(granularity=granularity, status=AssignmentStatus.SKIPPED, reason="no_end_date")

    if not group_id:
        logger.warning(f"[RECONCILE] {granularity}: missing release group ID (check environment variables); skipping")
        return GroupReconciliation(granularity=granularity, status=AssignmentStatus.SKIPPED, reason="no_group_id")

    try:
        catalog = await _load_catalog(store, group_id, run)
    except Exception as e:
        logger.warning(f"[RECONCILE] {granularity}: failed to fetch releases ({e}); skipping assignment")
        return GroupReconciliation(granularity=granularity, status=AssignmentStatus.UNAVAILABLE, reason=str(e))

    end_key = date_only_key(feature.timeframe_end)
    target = find_matching_release(feature.timeframe_end, catalog)
    if target is None:
        logger.warning(
            f"[RECONCILE] {granularity}: no matching release for end={end_key} (searched {len(catalog)} releases)"
        )
        for release in catalog[:DEBUG_CANDIDATE_LIMIT]:
            logger.debug(f"[RECONCILE] {granularity}:   - {release.name}: {release.start} to {release.end}")
        return GroupReconciliation(granularity=granularity, status=AssignmentStatus.NO_MATCH, reason=f"no release contains {end_key}")

    try:
        await store.set_assignment(feature.id, target.id, True, group_id)
    except Exception as e:
        logger.error(f"[RECONCILE] {granularity}: failed to assign {feature.id} -> {target.name} ({target.id}): {e}")
        return GroupReconciliation(
            granularity=granularity,
            status=AssignmentStatus.FAILED,
            release_id=target.id,
            release_name=target.name,
            reason=str(e),
        )

    outcome = GroupReconciliation(
        granularity=granularity,
        status=AssignmentStatus.ASSIGNED,
        release_id=target.id,
        release_name=target.name,
    )
    logger.info(f"[RECONCILE] Assigned to {granularity} -> {target.name} ({target.id})")
    await _remove_stale_assignments(store, feature, target, group_id, catalog, run, outcome)
    return outcome


async def reconcile_feature(
    store: ReleaseStore,
    feature: Feature,
    config: ReleaseSyncConfig,
) -> FeatureReconciliation:
    """Reconcile all four granularities for one feature, one after another."""
    run = ReconciliationRun()
    groups: dict[Granularity, GroupReconciliation] = {}
    for granularity in Granularity:
        groups[granularity] = await reconcile_group(store, feature, granularity, config.group_id(granularity), run)
    return FeatureReconciliation(feature_id=feature.id, groups=groups)
