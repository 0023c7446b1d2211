"""
Sync trigger and Jira webhook endpoints.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from field_label_sync.core.config import get_settings
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.orchestrator import LabelSyncOrchestrator
from field_label_sync.etl.workers.queue_manager import QueueManager, get_queue_manager, root_job_type
from field_label_sync.schemas.api_schemas import SyncTriggerResponse, WebhookAcceptedResponse

router = APIRouter()
logger = get_logger(__name__)


def get_orchestrator() -> LabelSyncOrchestrator:
    return LabelSyncOrchestrator()


@router.post(
    "/sync/trigger",
    response_model=SyncTriggerResponse,
    summary="Trigger Label Sync",
    description="Publish one root sync job for the configured mode"
)
async def trigger_sync(queue_manager: QueueManager = Depends(get_queue_manager)):
    """Enqueue a refresh now instead of waiting for the next scheduled tick."""
    mode = get_settings().SYNC_MODE
    job_type = root_job_type(mode)
    logger.info(f"🔘 MANUAL TRIGGER: publishing {job_type}")

    published = await asyncio.to_thread(queue_manager.publish_sync_job, job_type, trigger='manual')
    if not published:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to publish {job_type} job"
        )

    return SyncTriggerResponse(
        success=True,
        job_type=job_type,
        mode=mode,
        message=f"{job_type} job queued"
    )


@router.post(
    "/webhooks/field-configuration-changed",
    response_model=WebhookAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Field Configuration Changed",
    description="Accept a Jira field configuration webhook; the next scheduled refresh picks the change up"
)
async def field_configuration_changed(
    event: Optional[Dict[str, Any]] = Body(default=None),
    orchestrator: LabelSyncOrchestrator = Depends(get_orchestrator)
):
    orchestrator.handle_configuration_changed(event)
    webhook_event = (event or {}).get('webhookEvent')
    return WebhookAcceptedResponse(
        accepted=True,
        event=str(webhook_event) if webhook_event is not None else None
    )
