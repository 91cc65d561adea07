import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.cancellation import cancellation_manager
from app.core.config import Settings, get_settings
from app.core.database import AsyncSessionLocal
from app.models import SyncStatus
from app.repositories.sync_log_repository import sync_log_repository

from .progress import SessionFactory

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs periodic maintenance of sync jobs."""

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        session_factory: SessionFactory = AsyncSessionLocal,
        settings: Optional[Settings] = None,
    ):
        self.scheduler = scheduler or AsyncIOScheduler()
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self._jobs: Dict[str, Any] = {}

    def start(self) -> None:
        """Start the scheduler"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Sync scheduler started")

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Sync scheduler stopped")

    def schedule_stale_sweep(
        self,
        interval_minutes: Optional[int] = None,
        job_id: str = "sweep_stale_syncs",
    ) -> str:
        """
        Schedule the stale job sweep at regular intervals

        Args:
            interval_minutes: Minutes between sweeps (defaults to settings)
            job_id: Unique scheduler job identifier

        Returns:
            Scheduler job ID
        """
        interval = interval_minutes or self.settings.sync.sweep_interval_minutes
        if interval < 1:
            raise ValueError("Minimum interval is 1 minute")

        job = self.scheduler.add_job(
            self.sweep_stale_jobs,
            trigger=IntervalTrigger(minutes=interval),
            id=job_id,
            replace_existing=True,
            misfire_grace_time=300,
            max_instances=1,
        )
        self._jobs[job_id] = job
        logger.info(f"Scheduled stale sync sweep every {interval} minutes")
        return job_id

    async def sweep_stale_jobs(self, now: Optional[datetime] = None) -> List[int]:
        """
        Fail active jobs that have not been updated for too long.

        A worker that died mid-run leaves its job active forever; this frees
        the owner to start a new sync of the same type.

        Returns:
            Ids of the jobs marked as failed
        """
        stale_after = self.settings.sync.stale_after_minutes
        threshold = (now or datetime.utcnow()) - timedelta(minutes=stale_after)
        failed: List[int] = []

        async with self.session_factory() as db:
            stale_jobs = await sync_log_repository.find_stale(db, threshold)
            for job in stale_jobs:
                job_id = job.id
                last_update = job.updated_at
                applied = await sync_log_repository.advance(
                    job_id,
                    SyncStatus.ERROR,
                    db,
                    message="Sync stopped reporting progress and was marked as failed",
                    error_details=(
                        f"No update since {last_update} "
                        f"(limit {stale_after} minutes)"
                    ),
                )
                if applied:
                    failed.append(job_id)  # type: ignore[arg-type]
                    cancellation_manager.cancel_job(job_id)  # type: ignore[arg-type]

        if failed:
            logger.warning(f"Marked {len(failed)} stale sync jobs as failed: {failed}")
        return failed


# Global instance
sync_scheduler = SyncScheduler()
