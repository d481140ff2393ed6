"""Background jobs: daily vector store retention cleanup."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from equiscope.config import PARIS_TZ, settings
from equiscope.vectors.registry import VectorStoreRegistry

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """Runs `VectorStoreRegistry.cleanup` once a day."""

    def __init__(self, registry: VectorStoreRegistry, hour: Optional[int] = None, retention_days: Optional[int] = None):
        self.registry = registry
        self.hour = settings.cleanup_hour if hour is None else hour
        self.retention_days = settings.retention_days if retention_days is None else retention_days
        self.scheduler = AsyncIOScheduler(timezone=PARIS_TZ)
        self._started = False

    async def run_cleanup(self) -> int:
        try:
            removed = await self.registry.cleanup(self.retention_days)
        except Exception as e:
            logger.error(f"Vector store cleanup failed: {e}")
            return 0
        logger.info(f"Vector store cleanup removed {removed} race stores")
        return removed

    async def start(self) -> None:
        if self._started:
            return
        self.scheduler.add_job(
            self.run_cleanup,
            CronTrigger(hour=self.hour, minute=0, timezone=PARIS_TZ),
            id="vector_cleanup",
            replace_existing=True,
        )
        self.scheduler.start()
        self._started = True
        logger.info(f"Scheduler started (cleanup daily at {self.hour:02d}:00)")

    async def stop(self) -> None:
        if self._started:
            self.scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")
