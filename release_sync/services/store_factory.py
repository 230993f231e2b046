"""Release store construction from settings."""

from __future__ import annotations

from release_sync.config.settings import Settings
from release_sync.integrations.productboard.client import ProductboardClient


def build_release_store(settings: Settings) -> ProductboardClient:
    return ProductboardClient(
        api_token=settings.productboard_api_token,
        base_url=settings.productboard_base_url,
        timeout=settings.http_timeout_seconds,
    )
