"""Productboard v2 API client implementing the release store.

Thin async client:
- No retries or backoff (a failed call raises ReleaseStoreError)
- Follows pagination cursors on search and relationship listings
- Missing or forbidden release groups read as empty catalogs
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from release_sync.periods.calendar_math import iso_string
from release_sync.releases.errors import ReleaseStoreError
from release_sync.releases.models import Feature, ReleaseRecord

PRODUCTBOARD_BASE_URL = "https://api.productboard.com/v2"
HTTP_TIMEOUT = 30.0


class ProductboardClient:
    """Release store backed by the Productboard entities API."""

    def __init__(
        self,
        api_token: str,
        base_url: str = PRODUCTBOARD_BASE_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_token}",
                "X-Version": "2",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ProductboardClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            raise ReleaseStoreError(f"{method} {path} -> request failed: {e}") from e
        logger.debug(f"[PB_CLIENT] {method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _error(response: httpx.Response) -> ReleaseStoreError:
        request = response.request
        return ReleaseStoreError(
            f"{request.method} {request.url.path} -> {response.status_code} {response.text}",
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ReleaseStoreError(
                f"{response.request.method} {response.request.url.path} -> invalid JSON body",
                status_code=response.status_code,
            ) from e
        if not isinstance(payload, dict):
            raise ReleaseStoreError(
                f"{response.request.method} {response.request.url.path} -> unexpected body type",
                status_code=response.status_code,
            )
        return payload

    @classmethod
    def _entity(cls, response: httpx.Response) -> dict[str, Any]:
        data = cls._json(response).get("data")
        if not isinstance(data, dict) or "id" not in data:
            raise ReleaseStoreError(
                f"{response.request.method} {response.request.url.path} -> response has no entity",
                status_code=response.status_code,
            )
        return data

    async def get_feature(self, feature_id: str) -> Feature:
        response = await self._request("GET", f"/entities/{feature_id}")
        if not response.is_success:
            raise self._error(response)
        return Feature.from_payload(self._entity(response))

    async def list_releases_for_group(self, group_id: str) -> list[ReleaseRecord]:
        """Fetch every release whose parent is ``group_id``.

        Returns an empty list when the group id is empty, or when the API
        answers 404 (group not found) or 403 (no access to the group).
        """
        if not group_id:
            logger.debug("[PB_CLIENT] list_releases_for_group called without a group id, returning empty")
            return []

        releases: list[ReleaseRecord] = []
        cursor: str | None = None
        while True:
            response = await self._request(
                "POST",
                "/entities/search",
                json={"data": {"type": "release", "parent": {"id": group_id}}},
                params={"cursor": cursor} if cursor else None,
            )
            if response.status_code == httpx.codes.NOT_FOUND:
                logger.debug(f"[PB_CLIENT] Release group {group_id} not found (404), returning empty")
                return []
            if response.status_code == httpx.codes.FORBIDDEN:
                logger.debug(f"[PB_CLIENT] Permission denied for release group {group_id} (403), returning empty")
                return []
            if not response.is_success:
                raise self._error(response)

            payload = self._json(response)
            releases.extend(ReleaseRecord.from_payload(item) for item in payload.get("data") or [])
            cursor = (payload.get("pagination") or {}).get("next")
            if not cursor:
                return releases

    async def create_release(
        self,
        *,
        name: str,
        group_id: str,
        start: datetime,
        end: datetime,
        granularity: str = "day",
    ) -> ReleaseRecord:
        body = {
            "data": {
                "type": "release",
                "fields": {
                    "name": name,
                    "description": "",
                    "timeframe": {
                        "startDate": iso_string(start),
                        "endDate": iso_string(end),
                        "granularity": granularity or "day",
                    },
                },
                "relationships": [{"type": "parent", "target": {"id": group_id}}],
            }
        }
        response = await self._request("POST", "/entities", json=body)
        if not response.is_success:
            raise self._error(response)
        return ReleaseRecord.from_payload(self._entity(response))

    async def list_assigned_release_ids(self, feature_id: str) -> list[str]:
        target_ids: list[str] = []
        cursor: str | None = None
        while True:
            params = {"type": "link"}
            if cursor:
                params["cursor"] = cursor
            response = await self._request("GET", f"/entities/{feature_id}/relationships", params=params)
            if not response.is_success:
                raise self._error(response)
            payload = self._json(response)
            for relationship in payload.get("data") or []:
                target_id = (relationship.get("target") or {}).get("id")
                if target_id:
                    target_ids.append(str(target_id))
            cursor = (payload.get("pagination") or {}).get("next")
            if not cursor:
                return target_ids

    async def set_assignment(self, feature_id: str, release_id: str, assigned: bool, group_id: str) -> None:
        """Create or delete the feature -> release link.

        An existing link (409) on create and a missing link (404) on delete
        both count as success.
        """
        if assigned:
            response = await self._request(
                "POST",
                f"/entities/{feature_id}/relationships",
                json={"data": {"type": "link", "target": {"id": release_id}}},
            )
            if not response.is_success and response.status_code != httpx.codes.CONFLICT:
                raise self._error(response)
            logger.debug(f"[PB_CLIENT] Linked feature {feature_id} -> release {release_id} (group {group_id})")
            return

        response = await self._request("DELETE", f"/entities/{feature_id}/relationships/link/{release_id}")
        if not response.is_success and response.status_code != httpx.codes.NOT_FOUND:
            raise self._error(response)
        logger.debug(f"[PB_CLIENT] Unlinked feature {feature_id} -> release {release_id} (group {group_id})")
