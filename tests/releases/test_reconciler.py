"""Unit tests for assignment reconciliation.

Tests cover:
- Assign-then-remove within one group
- Links in other groups left alone
- Skips for missing end date or group id
- Unavailable catalogs and failed links isolated per granularity
- One catalog fetch per group per run
"""

import pytest

from release_sync.periods.generators import Granularity
from release_sync.releases.errors import ReleaseStoreError
from release_sync.releases.models import Feature
from release_sync.releases.reconciler import (
    AssignmentStatus,
    ReconciliationRun,
    reconcile_feature,
    reconcile_group,
)


@pytest.fixture
def catalog(fake_store):
    fake_store.add_release("rg-weekly", "w-feb-2", "Feb week 1 2026", "2026-02-02", "2026-02-08")
    fake_store.add_release("rg-monthly", "m-feb", "February 2026", "2026-02-01", "2026-02-28")
    fake_store.add_release("rg-monthly", "m-mar", "March 2026", "2026-03-01", "2026-03-31")
    fake_store.add_release("rg-quarterly", "q1", "Q1 2026", "2026-01-01", "2026-03-31")
    fake_store.add_release("rg-yearly", "y2026", "2026", "2026-01-01", "2026-12-31")
    return fake_store


@pytest.fixture
def feature():
    return Feature(id="feat-1", name="Export", timeframe_end="2026-02-03")


class TestReconcileGroup:
    @pytest.mark.asyncio
    async def test_assigns_and_removes_stale_link_in_same_group(self, catalog, feature):
        catalog.links["feat-1"] = {"m-mar", "w-feb-2"}

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.ASSIGNED
        assert outcome.release_id == "m-feb"
        assert outcome.removed_release_ids == ["m-mar"]
        assert catalog.links["feat-1"] == {"m-feb", "w-feb-2"}
        assert catalog.assignment_calls[0] == ("feat-1", "m-feb", True, "rg-monthly")

    @pytest.mark.asyncio
    async def test_already_assigned_is_stable(self, catalog, feature):
        catalog.links["feat-1"] = {"m-feb"}

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.ASSIGNED
        assert outcome.removed_release_ids == []
        assert catalog.links["feat-1"] == {"m-feb"}

    @pytest.mark.asyncio
    async def test_end_date_on_period_boundary(self, catalog):
        feature = Feature(id="feat-2", timeframe_end="2026-02-28T22:00:00Z")

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.release_id == "m-feb"

    @pytest.mark.asyncio
    async def test_no_end_date_is_a_skip(self, catalog):
        outcome = await reconcile_group(catalog, Feature(id="feat-3"), Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.SKIPPED
        assert outcome.reason == "no_end_date"
        assert catalog.list_calls == []

    @pytest.mark.asyncio
    async def test_placeholder_end_date_is_a_skip(self, catalog):
        feature = Feature.from_payload({"id": "f", "fields": {"timeframe": {"endDate": "none"}}})

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.SKIPPED
        assert outcome.reason == "no_end_date"
        assert catalog.assignment_calls == []

    @pytest.mark.asyncio
    async def test_missing_group_id_is_a_skip(self, catalog, feature):
        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, None)

        assert outcome.status == AssignmentStatus.SKIPPED
        assert outcome.reason == "no_group_id"

    @pytest.mark.asyncio
    async def test_no_match_changes_nothing(self, catalog):
        catalog.links["feat-4"] = {"m-mar"}
        feature = Feature(id="feat-4", timeframe_end="2026-05-10")

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.NO_MATCH
        assert "2026-05-10" in outcome.reason
        assert catalog.assignment_calls == []
        assert catalog.links["feat-4"] == {"m-mar"}

    @pytest.mark.asyncio
    async def test_unavailable_catalog(self, catalog, feature):
        catalog.list_failures["rg-monthly"] = ReleaseStoreError("POST /entities/search -> 500", 500)

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.UNAVAILABLE
        assert catalog.assignment_calls == []

    @pytest.mark.asyncio
    async def test_primary_assignment_failure(self, catalog, feature):
        catalog.assignment_failures.add(("m-feb", True))

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.FAILED
        assert outcome.release_id == "m-feb"

    @pytest.mark.asyncio
    async def test_stale_removal_failure_keeps_assignment(self, catalog, feature):
        catalog.links["feat-1"] = {"m-mar"}
        catalog.assignment_failures.add(("m-mar", False))

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.ASSIGNED
        assert outcome.removed_release_ids == []
        assert len(outcome.removal_errors) == 1
        assert catalog.links["feat-1"] == {"m-feb", "m-mar"}

    @pytest.mark.asyncio
    async def test_link_listing_failure_keeps_assignment(self, catalog, feature):
        catalog.links_failure = ReleaseStoreError("GET relationships -> 502", 502)

        outcome = await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly")

        assert outcome.status == AssignmentStatus.ASSIGNED
        assert outcome.removal_errors == ["GET relationships -> 502"]

    @pytest.mark.asyncio
    async def test_catalog_cached_within_run(self, catalog, feature):
        run = ReconciliationRun()

        await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly", run)
        await reconcile_group(catalog, feature, Granularity.MONTHLY, "rg-monthly", run)

        assert catalog.list_calls == ["rg-monthly"]


class TestReconcileFeature:
    @pytest.mark.asyncio
    async def test_assigns_one_release_per_granularity(self, catalog, feature, release_config):
        result = await reconcile_feature(catalog, feature, release_config)

        assert {g: r.release_id for g, r in result.groups.items()} == {
            Granularity.WEEKLY: "w-feb-2",
            Granularity.MONTHLY: "m-feb",
            Granularity.QUARTERLY: "q1",
            Granularity.YEARLY: "y2026",
        }
        assert catalog.links["feat-1"] == {"w-feb-2", "m-feb", "q1", "y2026"}
        assert catalog.list_calls == ["rg-weekly", "rg-monthly", "rg-quarterly", "rg-yearly"]

    @pytest.mark.asyncio
    async def test_failures_do_not_cross_granularities(self, catalog, feature, release_config):
        catalog.list_failures["rg-weekly"] = ReleaseStoreError("down")
        catalog.groups["rg-quarterly"] = []

        result = await reconcile_feature(catalog, feature, release_config)

        assert result.groups[Granularity.WEEKLY].status == AssignmentStatus.UNAVAILABLE
        assert result.groups[Granularity.MONTHLY].status == AssignmentStatus.ASSIGNED
        assert result.groups[Granularity.QUARTERLY].status == AssignmentStatus.NO_MATCH
        assert result.groups[Granularity.YEARLY].status == AssignmentStatus.ASSIGNED
        assert result.to_dict()["groups"]["quarterly"]["status"] == "no_match"

    @pytest.mark.asyncio
    async def test_each_run_fetches_fresh_catalogs(self, catalog, feature, release_config):
        await reconcile_feature(catalog, feature, release_config)
        await reconcile_feature(catalog, feature, release_config)

        assert catalog.list_calls.count("rg-monthly") == 2
