import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import SyncStatus
from app.repositories.sync_log_repository import sync_log_repository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class JobReporter:
    """
    Writes the state of one running job to the sync log.

    Each call opens its own short session so concurrent batches never share
    one. Progress pings are best effort: a failed write is logged and the
    sync carries on.
    """

    def __init__(self, job_id: int, session_factory: SessionFactory):
        self.job_id = job_id
        self.session_factory = session_factory

    async def set_total(self, total: int) -> None:
        async with self.session_factory() as db:
            await sync_log_repository.set_total(self.job_id, total, db)

    async def advance(self, status: SyncStatus, message: Optional[str] = None) -> bool:
        try:
            async with self.session_factory() as db:
                return await sync_log_repository.advance(
                    self.job_id, status, db, message=message
                )
        except Exception as e:
            logger.warning(f"Could not move sync job {self.job_id} to {status.value}: {e}")
            return False

    async def set_processed(self, processed: int) -> None:
        try:
            async with self.session_factory() as db:
                await sync_log_repository.bump_progress(
                    self.job_id, db, absolute=processed
                )
        except Exception as e:
            logger.warning(f"Progress update for sync job {self.job_id} failed: {e}")

    async def set_batch(
        self, batch: int, total_batches: int, message: Optional[str] = None
    ) -> None:
        try:
            async with self.session_factory() as db:
                await sync_log_repository.update_batch(
                    self.job_id, batch, total_batches, db, message=message
                )
        except Exception as e:
            logger.warning(f"Batch update for sync job {self.job_id} failed: {e}")

    async def set_message(self, message: str) -> None:
        try:
            async with self.session_factory() as db:
                await sync_log_repository.set_message(self.job_id, message, db)
        except Exception as e:
            logger.warning(f"Message update for sync job {self.job_id} failed: {e}")

    async def is_cancelled(self) -> bool:
        """Check the persisted status; read failures count as not cancelled."""
        try:
            async with self.session_factory() as db:
                return await sync_log_repository.is_cancelled(self.job_id, db)
        except Exception as e:
            logger.warning(f"Cancellation check for sync job {self.job_id} failed: {e}")
            return False


class ProgressAggregator:
    """
    Single writer of a job's processed-record counter.

    Batches report finished records with :meth:`add`; one background task
    sums them and writes the running total, so concurrent batches never race
    on a read-then-write of the stored counter.
    """

    def __init__(self, reporter: JobReporter, initial: int = 0):
        self.reporter = reporter
        self.processed = initial
        self._queue: "asyncio.Queue[Optional[int]]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ProgressAggregator":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def add(self, count: int) -> None:
        """Report ``count`` more processed records."""
        if count > 0:
            self._queue.put_nowait(count)

    async def close(self) -> int:
        """Flush outstanding counts and stop. Returns the final total."""
        if self._task is not None:
            self._queue.put_nowait(None)
            await self._task
            self._task = None
        return self.processed

    async def _run(self) -> None:
        stopping = False
        while not stopping:
            count = await self._queue.get()
            if count is None:
                break

            # Coalesce everything already queued into one write
            pending = count
            while not self._queue.empty():
                queued = self._queue.get_nowait()
                if queued is None:
                    stopping = True
                    break
                pending += queued

            self.processed += pending
            await self.reporter.set_processed(self.processed)
