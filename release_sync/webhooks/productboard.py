"""Productboard webhook endpoint for feature timeframe changes.

Rules: always answer quickly, no reconciliation inline.
Filters the event, then hands the feature id to a background task that
fetches the feature and reconciles its release assignments.

Assigning a release makes Productboard emit another ``feature.updated`` event
without a timeframe change; only updates listing ``timeframe`` among their
updated attributes are processed, which breaks that loop.
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger

from release_sync.core.auth import require_webhook_auth
from release_sync.releases.config import ReleaseSyncConfig
from release_sync.releases.reconciler import reconcile_feature
from release_sync.releases.store import ReleaseStore

router = APIRouter(tags=["webhooks", "productboard"])

FEATURE_EVENTS = frozenset({"feature.created", "feature.updated"})
TEMPORAL_ATTRIBUTE = "timeframe"


def _dig(payload: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def extract_event_type(body: dict[str, Any]) -> str | None:
    return _dig(body, "data", "eventType") or _dig(body, "data", "type") or body.get("type")


def extract_feature_id(body: dict[str, Any]) -> str | None:
    """Feature id from any of the payload shapes Productboard sends."""
    feature_id = (
        _dig(body, "data", "id")
        or _dig(body, "data", "attributes", "entity", "feature", "id")
        or _dig(body, "data", "attributes", "entity", "id")
        or _dig(body, "data", "entity", "id")
        or _dig(body, "entity", "id")
    )
    return str(feature_id) if feature_id else None


def should_process(event_type: str, body: dict[str, Any]) -> bool:
    """Process creations, and updates whose changed attributes include the timeframe."""
    if event_type not in FEATURE_EVENTS:
        return False
    updated_attributes = _dig(body, "data", "updatedAttributes")
    if event_type == "feature.updated" and isinstance(updated_attributes, list):
        return TEMPORAL_ATTRIBUTE in updated_attributes
    return True


async def process_feature_event(
    store: ReleaseStore,
    config: ReleaseSyncConfig,
    feature_id: str,
    request_id: str | None = None,
) -> None:
    """Fetch the feature and reconcile its assignments. Errors are logged, never raised."""
    log = logger.bind(request_id=request_id, feature_id=feature_id)
    started = time.monotonic()
    try:
        feature = await store.get_feature(feature_id)
        log.info(f"[PB_WEBHOOK] Feature: {feature.html_link or feature.id}")
        result = await reconcile_feature(store, feature, config)
        statuses = ", ".join(f"{granularity}={outcome.status}" for granularity, outcome in result.groups.items())
        log.info(f"[PB_WEBHOOK] Processing complete in {(time.monotonic() - started) * 1000:.0f} ms ({statuses})")
    except Exception as e:
        log.error(f"[PB_WEBHOOK] Processing error after {(time.monotonic() - started) * 1000:.0f} ms: {e}")


@router.post("/pb-webhook", dependencies=[Depends(require_webhook_auth)])
async def productboard_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
    """Handle Productboard feature webhooks.

    Returns:
        204 for ignored events, 400 without a feature id, 200 once the feature
        is queued for reconciliation
    """
    request_id = getattr(request.state, "request_id", None)
    log = logger.bind(request_id=request_id)

    try:
        body = await request.json()
    except ValueError:
        log.warning("[PB_WEBHOOK] Body is not valid JSON")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"status": "error", "reason": "invalid_payload"})
    if not isinstance(body, dict):
        body = {}

    event_type = extract_event_type(body)
    feature_id = extract_feature_id(body)
    size = request.headers.get("content-length", "0")
    log.info(f"[PB_WEBHOOK] type={event_type or '<?>'} featureId={feature_id or '<?>'} size={size}B")

    if not event_type:
        log.warning("[PB_WEBHOOK] No event type in payload, ignoring")
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    if not should_process(event_type, body):
        log.bind(updated_attributes=_dig(body, "data", "updatedAttributes")).debug(
            f"[PB_WEBHOOK] Ignoring event {event_type}"
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    if not feature_id:
        log.bind(snippet=str(body)[:400]).warning("[PB_WEBHOOK] No feature id in webhook payload")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"status": "error", "reason": "no_feature_id"})

    background_tasks.add_task(
        process_feature_event,
        request.app.state.release_store,
        request.app.state.release_config,
        feature_id,
        request_id,
    )
    log.info(f"[PB_WEBHOOK] Accepted feature {feature_id} for processing")
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "accepted", "feature_id": feature_id})
