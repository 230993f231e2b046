import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger

from release_sync.api.admin_seed import router as admin_seed_router
from release_sync.config.settings import settings
from release_sync.core.logger import setup_logger
from release_sync.releases.config import ReleaseSyncConfig
from release_sync.releases.store import ReleaseStore
from release_sync.services.store_factory import build_release_store
from release_sync.webhooks.productboard import router as productboard_webhook_router


def create_app(store: ReleaseStore | None = None, config: ReleaseSyncConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        store: Release store to use. Defaults to a Productboard client built
               from settings, closed on shutdown.
        config: Release group configuration. Defaults to settings.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_store = None
        if store is None:
            owned_store = build_release_store(settings)
        app.state.release_store = store or owned_store
        app.state.release_config = config or settings.release_config()
        logger.info("[STARTUP] Release store ready")
        yield
        if owned_store is not None:
            await owned_store.aclose()
            logger.info("[SHUTDOWN] Release store closed")

    app = FastAPI(title="release-sync", lifespan=lifespan)
    app.include_router(productboard_webhook_router)
    app.include_router(admin_seed_router)

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        """Tag every request with an id, echoed back as X-Request-ID."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        log = logger.bind(request_id=request_id)
        log.debug(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        log.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


setup_logger(level=settings.effective_log_level, json_logs=settings.log_json, log_file=settings.log_file)
app = create_app()
logger.info("FastAPI application initialized")
