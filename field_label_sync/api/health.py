"""
Health check endpoint for Field Label Sync monitoring.
"""

import asyncio

from fastapi import APIRouter, Depends

from field_label_sync.core.cache import CacheManager, get_cache_manager
from field_label_sync.core.config import get_settings
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.label_cache import LabelCache
from field_label_sync.etl.workers.queue_manager import QueueManager, get_queue_manager
from field_label_sync.schemas.api_schemas import HealthResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic Health Check",
    description="Check cache and queue connectivity and the size of the cached label set"
)
async def health_check(
    cache: CacheManager = Depends(get_cache_manager),
    queue_manager: QueueManager = Depends(get_queue_manager)
):
    """
    Basic health check for the service.

    Returns:
        HealthResponse: Service health status including cache and queue connectivity
    """
    label_count = 0
    if await cache.ping():
        cache_status = "healthy"
        try:
            label_count = len(await LabelCache(store=cache).read_all())
        except Exception as e:
            logger.warning(f"Health check could not read labels: {e}")
            cache_status = "degraded"
    else:
        cache_status = "unhealthy"

    settings = get_settings()
    queues = {}
    for queue_name in (settings.SYNC_JOBS_QUEUE, settings.CONTEXT_OPTIONS_QUEUE):
        queues[queue_name] = await asyncio.to_thread(queue_manager.get_queue_stats, queue_name)
    queue_status = "healthy" if all(stats is not None for stats in queues.values()) else "unhealthy"

    return HealthResponse(
        status="healthy" if cache_status == "healthy" and queue_status == "healthy" else "unhealthy",
        cache_backend=cache.backend,
        cache_status=cache_status,
        label_count=label_count,
        queue_status=queue_status,
        queues=queues,
        version=settings.APP_VERSION
    )
