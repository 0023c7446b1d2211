"""
Label Sync Orchestrator

Runs the label refresh in one of two modes:

- batch: build every context in one pass and overwrite the cached label set.
  A context that fails is logged and skipped; the overwrite still happens.
- fanout: publish one queue message per context. Each message is later
  handled by refresh_context(), which rebuilds that context on its own and
  merges its labels into the cache.

Concurrent fan-out units share one cache key with no isolation, so two
units finishing together can lose one another's merge unless
SYNC_MERGE_LOCK_ENABLED is set.
"""

import asyncio
import uuid
from typing import Any, Callable, Dict, List, Optional

from field_label_sync.core.config import Settings, get_settings
from field_label_sync.core.exceptions import LabelSyncError
from field_label_sync.core.logging_config import get_run_logger
from field_label_sync.etl.jira.jira_client import JiraAPIClient
from field_label_sync.etl.label_builder import ContextLabelBuilder, build_mapping_index
from field_label_sync.etl.label_cache import LabelCache
from field_label_sync.etl.project_directory import resolve_project_directory
from field_label_sync.etl.workers.queue_manager import QueueManager, get_queue_manager
from field_label_sync.models.label_models import BatchRunReport


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


class LabelSyncOrchestrator:
    """Coordinates Jira fetches, label building and cache writes for one refresh."""

    def __init__(
        self,
        client_factory: Optional[Callable[[], JiraAPIClient]] = None,
        label_cache: Optional[LabelCache] = None,
        queue_manager: Optional[QueueManager] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client_factory = client_factory or (lambda: JiraAPIClient.create_from_settings(self.settings))
        self.label_cache = label_cache or LabelCache()
        self._queue_manager = queue_manager

    @property
    def queue_manager(self) -> QueueManager:
        if self._queue_manager is None:
            self._queue_manager = get_queue_manager()
        return self._queue_manager

    async def run(self, mode: Optional[str] = None) -> Any:
        """Run one refresh in the given (or configured) mode."""
        mode = mode or self.settings.SYNC_MODE
        if mode == 'batch':
            return await self.run_batch_refresh()
        if mode == 'fanout':
            return await self.run_fanout_refresh()
        raise ValueError(f"Unknown sync mode: {mode}")

    async def run_batch_refresh(self) -> BatchRunReport:
        """
        Rebuild the whole label set and overwrite the cache with it.

        Failures while listing contexts, mappings or projects abort the run
        before anything is written. Failures inside one context are recorded
        in the report and that context contributes no labels.
        """
        run_id = new_run_id()
        log = get_run_logger(__name__, run_id=run_id, mode='batch')
        report = BatchRunReport(run_id=run_id)
        log.info("🚀 LABEL SYNC STARTED")

        labels: List[str] = []
        async with self.client_factory() as client:
            contexts = await client.fetch_contexts()
            mappings = await client.fetch_project_mappings()
            mapping_index = build_mapping_index(mappings)
            directory = await resolve_project_directory(
                client, (mapping.project_id for mapping in mappings)
            )
            builder = ContextLabelBuilder(client)

            for context in contexts:
                context_log = log.bind(context_id=context.id)
                try:
                    context_labels = await builder.build(context.id, mapping_index, directory)
                except LabelSyncError as e:
                    context_log.error(f"Context build failed, skipping: {e}")
                    report.failed[context.id] = str(e)
                    continue
                labels.extend(context_labels)
                report.succeeded.append(context.id)

        await self.label_cache.overwrite(labels)
        report.label_count = len(labels)

        if report.failed:
            log.warning(
                f"🏁 LABEL SYNC FINISHED with failures: {len(report.failed)} of {len(contexts)} contexts failed, "
                f"{report.label_count} labels saved"
            )
        else:
            log.info(f"🏁 LABEL SYNC FINISHED: {len(contexts)} contexts, {report.label_count} labels saved")
        return report

    async def run_fanout_refresh(self) -> List[str]:
        """
        Publish one refresh unit per context.

        A context that cannot be enqueued is logged and skipped.

        Returns:
            Ids of the contexts that were enqueued
        """
        run_id = new_run_id()
        log = get_run_logger(__name__, run_id=run_id, mode='fanout')

        async with self.client_factory() as client:
            contexts = await client.fetch_contexts()

        enqueued: List[str] = []
        for context in contexts:
            published = await asyncio.to_thread(
                self.queue_manager.publish_context_job, context.id, runId=run_id
            )
            if published:
                enqueued.append(context.id)
            else:
                log.bind(context_id=context.id).error("Failed to enqueue context")

        log.info(f"📋 Enqueued {len(enqueued)} of {len(contexts)} contexts")
        return enqueued

    async def refresh_context(self, context_id: Optional[str], run_id: Optional[str] = None) -> List[str]:
        """
        Rebuild one context and merge its labels into the cache.

        Mappings and projects are fetched again here so the unit does not
        depend on any other unit. Every failure propagates to the caller.

        Returns:
            The labels written for this context
        """
        if context_id is None or not str(context_id).strip():
            raise ValueError("Missing contextId in payload")
        context_id = str(context_id).strip()

        log = get_run_logger(__name__, run_id=run_id or new_run_id(), context_id=context_id)
        log.debug("Loading context options")

        async with self.client_factory() as client:
            mappings = await client.fetch_project_mappings()
            mapping_index = build_mapping_index(mappings)
            directory = await resolve_project_directory(client, mapping_index.get(context_id, []))
            labels = await ContextLabelBuilder(client).build(context_id, mapping_index, directory)

        await self.label_cache.merge_upsert(labels)
        log.info(f"Merged {len(labels)} labels")
        return labels

    def handle_configuration_changed(self, event: Optional[Dict[str, Any]] = None) -> None:
        """Accept a field configuration change notice. No incremental sync happens yet."""
        log = get_run_logger(__name__)
        log.info(f"Field configuration change received, waiting for next scheduled refresh: {event or {}}")
