"""
Main FastAPI application for Field Label Sync.
Serves the label lookup API and drives the scheduled refresh.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from field_label_sync.core.cache import get_cache_manager, set_cache_manager
from field_label_sync.core.config import get_settings
from field_label_sync.core.logging_config import setup_logging, get_logger
from field_label_sync.etl.job_scheduler import LabelSyncScheduler
from field_label_sync.api.health import router as health_router
from field_label_sync.api.labels import router as labels_router
from field_label_sync.api.sync_routes import router as sync_router

setup_logging()
logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages the application lifecycle."""
    logger.info("🚀 Starting Field Label Sync...")

    cache = get_cache_manager()
    if await cache.ping():
        logger.info(f"Cache connection established: {cache.stats()}")
    else:
        logger.warning("Cache not reachable - label lookups will return no results until it recovers")

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = LabelSyncScheduler()
        scheduler.start()
    else:
        logger.info("Scheduler disabled - refreshes run only on manual trigger")
    app.state.scheduler = scheduler

    try:
        yield
    finally:
        logger.info("🔄 Shutting down Field Label Sync...")
        if scheduler:
            scheduler.shutdown()
        try:
            await cache.close()
        except Exception as e:
            logger.warning(f"Error closing cache connections: {e}")
        set_cache_manager(None)
        logger.info("Field Label Sync shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Field Label Sync

    Keeps a cached, display-ready label set for a Jira custom field's options
    and serves bounded lookups over it.

    - **Labels**: substring search over the cached label set
    - **Sync**: manual refresh trigger and Jira configuration webhook
    - **Health**: cache connectivity and label count
    """,
    lifespan=lifespan,
)

app.include_router(health_router, prefix=settings.API_V1_STR, tags=["Health"])
app.include_router(labels_router, prefix=settings.API_V1_STR, tags=["Labels"])
app.include_router(sync_router, prefix=settings.API_V1_STR, tags=["Sync"])


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """API-only global exception handler."""
    error_id = str(uuid.uuid4())[:8]

    logger.error(f"Unhandled exception - error_id: {error_id}, path: {request.url.path}, error: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


if __name__ == "__main__":
    try:
        print(f"[INFO] Starting Field Label Sync on {settings.HOST}:{settings.PORT}")
        uvicorn.run(
            "field_label_sync.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower(),
            access_log=False
        )
    except KeyboardInterrupt:
        print("[INFO] Shutdown complete")
