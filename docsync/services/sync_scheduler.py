"""Background scheduling of sync batches"""

import asyncio
import logging
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from docsync.config import config
from docsync.models.sync import SyncBatchResult
from docsync.services.doc_sync import SyncError
from docsync.services.pipeline import Pipeline
from docsync.utils.sources_loader import load_sources_config

logger = logging.getLogger(__name__)

JOB_ID = "doc_sync_batch"


class SyncScheduler:
    """
    Keep crawling every source in bounded batches

    Each tick runs one sync_batch per source. A complete source is a no-op
    until an operator resets it. The job never overlaps itself.

    The pipeline is built on the first tick and reused by every later one.
    Its HTTP clients are bound to an event loop, so all ticks run on one
    loop owned by the scheduler.
    """

    def __init__(self, sources_config_path: str | None = None, db_path: str | None = None):
        self.sources_config_path = sources_config_path or config.sources_config_path
        self.db_path = db_path or config.db_path
        self.scheduler: BackgroundScheduler | None = None
        self._pipeline: Pipeline | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def configure_scheduler_sync(
        self, scheduler: BackgroundScheduler, interval_minutes: int
    ) -> None:
        """
        Register the sync job (BackgroundScheduler runs it in a worker thread)

        Args:
            scheduler: Initialized BackgroundScheduler instance
            interval_minutes: Minutes between sync batches
        """
        self.scheduler = scheduler
        self.scheduler.add_job(
            self.sync_once,
            trigger=IntervalTrigger(minutes=interval_minutes, start_date=datetime.now()),
            id=JOB_ID,
            name="Documentation Sync Batch",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Scheduled sync batch every {interval_minutes} minutes")

    def stop_scheduler_sync(self) -> None:
        """Remove the sync job and release the pipeline"""
        if self.scheduler:
            try:
                self.scheduler.remove_job(JOB_ID)
                logger.info("Stopped sync scheduler")
            except JobLookupError:
                logger.warning("Sync job not found during shutdown")

        if self._loop is None:
            return
        if self._loop.is_running():
            logger.warning("Sync batch still running, pipeline left open")
            return
        if self._pipeline is not None:
            self._loop.run_until_complete(self._pipeline.close())
            self._pipeline = None
        self._loop.close()
        self._loop = None

    def sync_once(self) -> list[SyncBatchResult]:
        """
        Run one batch for every enabled source

        Synchronous because BackgroundScheduler runs jobs in threads; the
        async pipeline is driven on the scheduler's own event loop.
        """
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        try:
            return self._loop.run_until_complete(self._sync())
        except SyncError as e:
            logger.error(f"Scheduled sync failed: {e}")
            return []

    async def _sync(self) -> list[SyncBatchResult]:
        if self._pipeline is None:
            sources_config = load_sources_config(self.sources_config_path)
            self._pipeline = await Pipeline.create(sources_config, self.db_path)
            logger.info("Built sync pipeline for scheduled batches")
        return await self._pipeline.sync()
