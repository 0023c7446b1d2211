"""
Label Sync Worker - consumes root sync jobs and per-context refresh units.

Message types:
- batch_refresh: run a full batch refresh
- load_contexts: enumerate contexts and enqueue one unit per context
- load_context_options: refresh one context ({"contextId": ...})
"""

from typing import Any, Dict, Optional

from field_label_sync.core.cache import CacheManager, get_cache_manager
from field_label_sync.core.config import get_settings
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.label_cache import LabelCache
from field_label_sync.etl.orchestrator import LabelSyncOrchestrator
from field_label_sync.etl.workers.base_worker import BaseWorker
from field_label_sync.etl.workers.queue_manager import (
    BATCH_REFRESH,
    LOAD_CONTEXT_OPTIONS,
    LOAD_CONTEXTS,
    QueueManager,
    RejectMessage,
)

logger = get_logger(__name__)


class UnknownMessageType(RejectMessage):
    """Raised for messages this worker has no handler for."""


class LabelSyncWorker(BaseWorker):
    """Routes queue messages to the orchestrator."""

    def __init__(
        self,
        orchestrator: Optional[LabelSyncOrchestrator] = None,
        queue_manager: Optional[QueueManager] = None,
        cache: Optional[CacheManager] = None,
    ):
        settings = get_settings()
        queue_manager = queue_manager or QueueManager()
        super().__init__(
            [settings.SYNC_JOBS_QUEUE, settings.CONTEXT_OPTIONS_QUEUE],
            queue_manager=queue_manager,
        )
        self.cache = cache or get_cache_manager()
        self.orchestrator = orchestrator or LabelSyncOrchestrator(
            label_cache=LabelCache(store=self.cache), queue_manager=queue_manager
        )

    async def release_resources(self) -> None:
        # Redis connections are bound to this message's event loop
        await self.cache.close()

    async def process_message(self, message: Dict[str, Any]) -> Any:
        message_type = message.get('type')

        if message_type == BATCH_REFRESH:
            report = await self.orchestrator.run_batch_refresh()
            if report.failed:
                logger.warning(f"Batch refresh {report.run_id} skipped contexts: {sorted(report.failed)}")
            return report

        if message_type == LOAD_CONTEXTS:
            return await self.orchestrator.run_fanout_refresh()

        if message_type == LOAD_CONTEXT_OPTIONS:
            if not str(message.get('contextId') or '').strip():
                raise RejectMessage(f"Missing contextId in payload: {message}")
            return await self.orchestrator.refresh_context(
                message.get('contextId'), run_id=message.get('runId')
            )

        raise UnknownMessageType(f"Unknown message type: {message_type}")
