"""
Scheduled trigger for the label refresh.

One APScheduler interval job publishes exactly one root job per tick: a
'batch_refresh' in batch mode or a 'load_contexts' in fan-out mode. The
refresh itself runs in the queue worker, never on the scheduler loop.
"""

import asyncio
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from field_label_sync.core.config import Settings, get_settings
from field_label_sync.core.logging_config import get_logger
from field_label_sync.etl.workers.queue_manager import QueueManager, get_queue_manager, root_job_type

logger = get_logger(__name__)

JOB_ID = 'label_sync_tick'


class LabelSyncScheduler:
    """Owns the AsyncIOScheduler and its single refresh job."""

    def __init__(self, queue_manager: Optional[QueueManager] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._queue_manager = queue_manager
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def queue_manager(self) -> QueueManager:
        if self._queue_manager is None:
            self._queue_manager = get_queue_manager()
        return self._queue_manager

    async def tick(self) -> bool:
        """Publish one root job for the configured mode."""
        job_type = root_job_type(self.settings.SYNC_MODE)
        logger.info(f"🟢 AUTO TRIGGER: publishing {job_type}")
        published = await asyncio.to_thread(self.queue_manager.publish_sync_job, job_type, trigger='schedule')
        if not published:
            logger.error(f"❌ Failed to publish scheduled {job_type}")
        return published

    def start(self) -> None:
        if self.scheduler and self.scheduler.running:
            logger.warning("Label sync scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler(timezone=self.settings.SCHEDULER_TIMEZONE)
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(minutes=self.settings.SYNC_INTERVAL_MINUTES),
            id=JOB_ID,
            name='Label sync refresh',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            f"Job scheduler started successfully: every {self.settings.SYNC_INTERVAL_MINUTES} minutes, "
            f"mode={self.settings.SYNC_MODE}"
        )

    def shutdown(self) -> None:
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("⏹️ Label sync scheduler stopped")
        self.scheduler = None

    def next_run_time(self):
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None
