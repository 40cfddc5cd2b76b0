import logging
import asyncio
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import Settings
from core.exceptions import ETLException
from ingestion.pipeline import run_fetch, run_upload
from models.base import Category

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Periodically re-fetch the configured seasons and upload every category"""

    def __init__(self, settings: Settings, stop_event: Optional[asyncio.Event] = None):
        self.settings = settings
        self.stop_event = stop_event
        self.scheduler = AsyncIOScheduler()

    async def run_refresh_job(self):
        """Job to fetch and upload all categories"""
        logger.info("Scheduler: Starting refresh job")
        categories = list(Category)
        try:
            await run_fetch(self.settings, categories)
            # Freshly fetched files can shift batch boundaries, so progress
            # from an older run does not apply
            summary = await run_upload(self.settings, categories, reset=True, stop_event=self.stop_event)
            logger.info(f"Scheduler: refresh job finished with {summary.error_count} failed records")
        except ETLException as e:
            logger.error(f"Scheduler: refresh job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_refresh_job,
            trigger=IntervalTrigger(hours=self.settings.REFRESH_INTERVAL_HOURS),
            id="nfl_refresh_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Refresh scheduler started (every {self.settings.REFRESH_INTERVAL_HOURS}h)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Refresh scheduler stopped")
