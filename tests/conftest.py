"""Root conftest for all tests.

Provides an in-memory release store shared by seeder, reconciler and API tests.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from release_sync.periods.generators import Granularity
from release_sync.releases.config import ReleaseSyncConfig
from release_sync.releases.errors import ReleaseStoreError
from release_sync.releases.models import Feature, ReleaseRecord

GROUP_IDS = {
    Granularity.WEEKLY: "rg-weekly",
    Granularity.MONTHLY: "rg-monthly",
    Granularity.QUARTERLY: "rg-quarterly",
    Granularity.YEARLY: "rg-yearly",
}


class FakeReleaseStore:
    """In-memory release store recording every call.

    Failures are injected per group (listing), per period name (creation) and
    per (release id, assigned) pair (linking).
    """

    def __init__(self) -> None:
        self.groups: dict[str, list[ReleaseRecord]] = {}
        self.features: dict[str, Feature] = {}
        self.links: dict[str, set[str]] = {}
        self.list_failures: dict[str, Exception] = {}
        self.create_failures: dict[str, Exception] = {}
        self.assignment_failures: set[tuple[str, bool]] = set()
        self.links_failure: Exception | None = None
        self.list_calls: list[str] = []
        self.created_names: list[str] = []
        self.create_calls: list[dict] = []
        self.assignment_calls: list[tuple[str, str, bool, str]] = []
        self._next_id = 0

    def add_release(self, group_id: str, release_id: str, name: str, start: str, end: str) -> ReleaseRecord:
        release = ReleaseRecord(id=release_id, name=name, start=start, end=end)
        self.groups.setdefault(group_id, []).append(release)
        return release

    async def list_releases_for_group(self, group_id: str) -> list[ReleaseRecord]:
        self.list_calls.append(group_id)
        if group_id in self.list_failures:
            raise self.list_failures[group_id]
        return list(self.groups.get(group_id, []))

    async def create_release(
        self,
        *,
        name: str,
        group_id: str,
        start: datetime,
        end: datetime,
        granularity: str,
    ) -> ReleaseRecord:
        self.create_calls.append({"name": name, "group_id": group_id, "granularity": granularity})
        if name in self.create_failures:
            raise self.create_failures[name]
        self._next_id += 1
        release = ReleaseRecord(id=f"rel-{self._next_id}", name=name, start=start, end=end)
        self.groups.setdefault(group_id, []).append(release)
        self.created_names.append(name)
        return release

    async def set_assignment(self, feature_id: str, release_id: str, assigned: bool, group_id: str) -> None:
        self.assignment_calls.append((feature_id, release_id, assigned, group_id))
        if (release_id, assigned) in self.assignment_failures:
            raise ReleaseStoreError(f"link {release_id} failed", status_code=500)
        links = self.links.setdefault(feature_id, set())
        if assigned:
            links.add(release_id)
        else:
            links.discard(release_id)

    async def list_assigned_release_ids(self, feature_id: str) -> list[str]:
        if self.links_failure is not None:
            raise self.links_failure
        return sorted(self.links.get(feature_id, set()))

    async def get_feature(self, feature_id: str) -> Feature:
        if feature_id not in self.features:
            raise ReleaseStoreError(f"GET /entities/{feature_id} -> 404", status_code=404)
        return self.features[feature_id]


@pytest.fixture
def fake_store() -> FakeReleaseStore:
    return FakeReleaseStore()


@pytest.fixture
def release_config() -> ReleaseSyncConfig:
    return ReleaseSyncConfig(group_ids=dict(GROUP_IDS))


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    from release_sync.config.settings import settings

    monkeypatch.setattr(settings, "webhook_auth", "s3cret")
    return "s3cret"


@pytest.fixture
def api_client(fake_store, release_config, webhook_secret):
    from fastapi.testclient import TestClient

    from release_sync.main import create_app

    with TestClient(create_app(store=fake_store, config=release_config)) as client:
        client.headers["Authorization"] = f"Bearer {webhook_secret}"
        yield client
