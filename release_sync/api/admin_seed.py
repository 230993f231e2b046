from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from release_sync.core.auth import require_webhook_auth
from release_sync.releases.errors import AllGroupsUnavailableError
from release_sync.releases.seeder import seed_all

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_webhook_auth)])


@router.post("/seed-releases")
async def seed_releases(request: Request) -> JSONResponse:
    """Seed weekly, monthly and quarterly releases one year ahead and yearly releases five years ahead.

    Existing releases with identical day bounds are never recreated.
    """
    log = logger.bind(request_id=getattr(request.state, "request_id", None))
    try:
        report = await seed_all(request.app.state.release_store, request.app.state.release_config)
    except AllGroupsUnavailableError as e:
        log.error(f"[SEED] {e.message}")
        return JSONResponse(
            status_code=status.HTTP_424_FAILED_DEPENDENCY,
            content={
                "status": "failed",
                "error": "No release groups available",
                "message": e.message,
                "groups": e.groups,
            },
        )
    except Exception as e:
        log.error(f"[SEED] Seeder failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "error": str(e) or "Internal server error"},
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=report.to_dict())
