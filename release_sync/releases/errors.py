"""Error types for the release catalog.

Only a total outage of every release group escalates; everything else is
recorded per period or per granularity.
"""

from __future__ import annotations

from typing import Any


class ReleaseStoreError(Exception):
    """Raised when a call to the release store fails.

    Not-found and forbidden groups are not errors (they read as an empty
    catalog); this covers rate limits, 5xx, bad requests and transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AllGroupsUnavailableError(Exception):
    """Raised by seeding when no release group catalog could be fetched."""

    def __init__(self, groups: dict[str, dict[str, Any]], message: str | None = None):
        self.groups = groups
        self.message = message or (
            "All release groups failed to fetch. Check environment variables and API permissions."
        )
        super().__init__(self.message)
