"""Shared-secret bearer authentication for webhook and admin endpoints.

Productboard sends the configured secret in the Authorization header, either
as ``Bearer <token>`` or as the raw value.
"""

from __future__ import annotations

import secrets
from typing import NoReturn

from fastapi import HTTPException, Request, status
from loguru import logger

from release_sync.config.settings import settings


def _raise_unauthorized(request: Request, presented: str) -> NoReturn:
    logger.warning(
        "Unauthorized request",
        endpoint=request.url.path,
        ip=request.client.host if request.client else None,
        auth=f"{presented[:12]}..." if presented else "<empty>",
    )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": "Invalid or missing authentication"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def is_authorized(presented: str, configured: str) -> bool:
    """Compare a presented Authorization header against the configured secret."""
    if not configured:
        return False
    expected = configured if configured.startswith("Bearer ") else f"Bearer {configured}"
    presented_bytes = presented.encode()
    return secrets.compare_digest(presented_bytes, expected.encode()) or secrets.compare_digest(
        presented_bytes, configured.encode()
    )


def require_webhook_auth(request: Request) -> None:
    """FastAPI dependency rejecting requests without the shared secret."""
    presented = request.headers.get("authorization", "")
    if not is_authorized(presented, settings.webhook_auth):
        _raise_unauthorized(request, presented)
