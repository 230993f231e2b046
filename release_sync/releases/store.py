"""Release store port consumed by the seeder and the reconciler."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from release_sync.releases.models import Feature, ReleaseRecord


class ReleaseStore(Protocol):
    """Async catalog/assignment store.

    Implementations raise ``ReleaseStoreError`` for failed calls.
    """

    async def list_releases_for_group(self, group_id: str) -> list[ReleaseRecord]:
        """All releases in a group; empty when the group is missing or forbidden."""
        ...

    async def create_release(
        self,
        *,
        name: str,
        group_id: str,
        start: datetime,
        end: datetime,
        granularity: str,
    ) -> ReleaseRecord: ...

    async def set_assignment(self, feature_id: str, release_id: str, assigned: bool, group_id: str) -> None:
        """Link or unlink a feature and a release; idempotent in both directions."""
        ...

    async def list_assigned_release_ids(self, feature_id: str) -> list[str]:
        """Ids of every entity the feature is currently linked to."""
        ...

    async def get_feature(self, feature_id: str) -> Feature: ...
