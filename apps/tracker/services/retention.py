"""Periodic purge of old terminal deployment records.

Off by default (retention_hours == 0), which keeps the full history.
Pending and running records are never purged.
"""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from apps.tracker.models.deployment import utc_now
from apps.tracker.repositories.base import DeploymentRepository
from apps.tracker.services.deployment_worker import DeploymentWorker

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Runs `sweep_once` on an APScheduler interval job."""

    def __init__(
        self,
        repository: DeploymentRepository,
        retention_hours: int,
        check_interval_minutes: int = 60,
        worker: DeploymentWorker | None = None,
    ):
        if retention_hours < 0:
            raise ValueError("retention_hours must be 0 (disabled) or positive")
        self.repository = repository
        self.retention_hours = retention_hours
        self.check_interval_minutes = check_interval_minutes
        self.worker = worker
        self.scheduler: AsyncIOScheduler | None = None

    @property
    def enabled(self) -> bool:
        return self.retention_hours > 0

    async def sweep_once(self) -> int:
        """Purge terminal records older than the retention window. Returns the count."""
        if not self.enabled:
            return 0
        cutoff = utc_now() - timedelta(hours=self.retention_hours)
        purged = await self.repository.purge_terminal(cutoff)
        if self.worker is not None:
            self.worker.forget(purged)
        if purged:
            logger.info("Retention sweep purged %d deployment record(s) older than %s", len(purged), cutoff.isoformat())
        else:
            logger.debug("Retention sweep found nothing to purge")
        return len(purged)

    def start(self) -> None:
        if not self.enabled:
            logger.info("Retention sweeper disabled; keeping full deployment history")
            return
        if self.scheduler is not None:
            logger.warning("Retention sweeper already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.sweep_once,
            trigger=IntervalTrigger(minutes=self.check_interval_minutes),
            id="deployment_retention",
            name="Deployment Retention Sweep",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "Retention sweeper started: keeping %d hour(s), checking every %d minute(s)",
            self.retention_hours,
            self.check_interval_minutes,
        )

    def stop(self) -> None:
        if self.scheduler is None:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Retention sweeper stopped")
