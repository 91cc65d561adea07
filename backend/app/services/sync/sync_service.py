import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.cancellation import CancellationToken
from app.core.config import Settings, get_settings
from app.core.database import AsyncSessionLocal
from app.models import SyncStatus, SyncType
from app.repositories.credential_repository import credential_repository
from app.repositories.sync_log_repository import sync_log_repository
from app.services.soc import CredentialsNotFoundError, SocClient, SocException

from .batch_scheduler import BatchScheduler
from .models import SyncOptions, SyncResult
from .progress import JobReporter, SessionFactory
from .reconciler import RecordReconciler

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
ContinuationHandler = Callable[..., Awaitable[None]]


class SyncService:
    """
    Runs one sync job end to end.

    Loads the owner's SOC credentials, fetches the record set, drives the
    batch scheduler and writes the final status. Fatal errors (missing
    credentials, fetch or payload errors) end the job in ``error``; a
    cancelled job is never marked completed.
    """

    def __init__(
        self,
        session_factory: SessionFactory = AsyncSessionLocal,
        client_factory: Optional[Callable[[], SocClient]] = None,
        settings: Optional[Settings] = None,
        on_continue: Optional[ContinuationHandler] = None,
    ):
        """
        Initialize sync service.

        Args:
            session_factory: Creates database sessions
            client_factory: Creates SOC clients (defaults to configured client)
            settings: Application settings
            on_continue: Schedules a continuation job when a run hands off
        """
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.client_factory = client_factory or (
            lambda: SocClient.from_settings(self.settings.soc)
        )
        self.on_continue = on_continue

    async def run(
        self,
        job_id: int,
        owner_id: str,
        sync_type: SyncType,
        options: Optional[SyncOptions] = None,
        cancellation_token: Optional[CancellationToken] = None,
        records: Optional[List[Record]] = None,
        offset: int = 0,
        parent_id: Optional[int] = None,
    ) -> Optional[SyncResult]:
        """
        Execute a sync job.

        Args:
            job_id: Sync log row of this run
            owner_id: Owner whose data is synchronized
            sync_type: Entity type to synchronize
            options: Batch sizing and pacing
            cancellation_token: Token flipped by cancel requests
            records: Already fetched records (continuation runs only)
            offset: First record to process (continuation runs only)
            parent_id: Root job of a continuation run

        Returns:
            The run's counts, or None when the job failed or never started
        """
        options = options or SyncOptions.from_settings(self.settings.sync)
        token = cancellation_token or CancellationToken()
        reporter = JobReporter(job_id, self.session_factory)

        try:
            if not await self._start(job_id, sync_type, records is not None):
                logger.info(f"Sync job {job_id} was stopped before it started")
                return None

            if records is None:
                records = await self.fetch_records(owner_id, sync_type)
                await reporter.set_total(len(records))

            if token.is_cancelled or await reporter.is_cancelled():
                logger.info(f"Sync job {job_id} cancelled before processing")
                await self.write_final_status(
                    job_id, SyncStatus.CANCELLED, "Sync cancelled before processing"
                )
                return None

            await reporter.advance(
                SyncStatus.PROCESSING,
                f"Processing {len(records) - offset} {sync_type.value} records",
            )

            scheduler = BatchScheduler(reporter, options, token)
            result = await scheduler.run(
                sync_type, records, self._reconciler_factory(owner_id), offset
            )
        except SocException as e:
            logger.error(f"Sync job {job_id} failed: {e}")
            await self.write_final_status(
                job_id,
                SyncStatus.ERROR,
                f"Sync failed: {e.args[0] if e.args else e}",
                error_details=str(e),
            )
            return None
        except Exception as e:
            logger.exception(f"Unexpected error in sync job {job_id}: {e}")
            await self.write_final_status(
                job_id,
                SyncStatus.ERROR,
                "Sync failed with an unexpected error",
                error_details=f"{type(e).__name__}: {e}",
            )
            return None

        if result.cancelled:
            await self.write_final_status(
                job_id,
                SyncStatus.CANCELLED,
                f"Sync cancelled after {result.processed_records} records",
            )
        elif result.continue_from is not None:
            await self._hand_off(
                job_id, owner_id, sync_type, options, records, result, parent_id
            )
        else:
            applied = await self.write_final_status(
                job_id, SyncStatus.COMPLETED, result.summary_message()
            )
            if not applied:
                logger.info(f"Sync job {job_id} finished but was already cancelled")
                result.cancelled = True
        return result

    async def fetch_records(self, owner_id: str, sync_type: SyncType) -> List[Record]:
        """Load credentials and fetch the complete SOC record set."""
        async with self.session_factory() as db:
            credential = await credential_repository.get(owner_id, sync_type, db)
        if credential is None:
            raise CredentialsNotFoundError(
                f"No SOC credentials configured for the {sync_type.value} export"
            )

        async with self.client_factory() as client:
            return await client.fetch_records(credential.to_parameters())

    async def write_final_status(
        self,
        job_id: int,
        status: SyncStatus,
        message: str,
        error_details: Optional[str] = None,
    ) -> bool:
        """
        Write a finishing status, retrying store failures.

        Returns:
            False if the job had already finished (e.g. it was cancelled)

        Raises:
            SQLAlchemyError: The store kept failing after all attempts
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.sync.terminal_write_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(SQLAlchemyError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    async with self.session_factory() as db:
                        return await sync_log_repository.advance(
                            job_id,
                            status,
                            db,
                            message=message,
                            error_details=error_details,
                        )
        except SQLAlchemyError as e:
            logger.error(
                f"Could not write final status {status.value} for sync job {job_id}: {e}"
            )
            raise
        return False

    async def _start(self, job_id: int, sync_type: SyncType, continuation: bool) -> bool:
        message = (
            f"{sync_type.value.capitalize()} sync continuing"
            if continuation
            else f"{sync_type.value.capitalize()} sync in progress"
        )
        async with self.session_factory() as db:
            job = await sync_log_repository.get(job_id, db)
            if job is None:
                return False
            if job.status == SyncStatus.PROCESSING.value:
                return True
            return await sync_log_repository.advance(
                job_id, SyncStatus.IN_PROGRESS, db, message=message
            )

    async def _hand_off(
        self,
        job_id: int,
        owner_id: str,
        sync_type: SyncType,
        options: SyncOptions,
        records: List[Record],
        result: SyncResult,
        parent_id: Optional[int],
    ) -> None:
        """Close this run as ``continues`` and schedule the remaining records."""
        offset = result.continue_from or 0
        root_id = parent_id or job_id

        async with self.session_factory() as db:
            child = await sync_log_repository.create(
                sync_type,
                owner_id,
                db,
                parent_id=root_id,
                status=SyncStatus.PROCESSING,
                message=f"Continuing from record {offset + 1} of {len(records)}",
                total_records=len(records),
                processed_records=offset,
            )

        moved = await self.write_final_status(
            job_id, SyncStatus.CONTINUES, f"Continued in sync job {child.id}"
        )
        if not moved:
            # Cancelled while handing off
            async with self.session_factory() as db:
                await sync_log_repository.advance(
                    child.id, SyncStatus.CANCELLED, db, message="Sync cancelled by user"
                )
            return

        logger.info(f"Sync job {job_id} continues in job {child.id} at record {offset}")
        if self.on_continue is None:
            await self.run(
                child.id,
                owner_id,
                sync_type,
                options,
                records=records,
                offset=offset,
                parent_id=root_id,
            )
        else:
            try:
                await self.on_continue(
                    job_id=child.id,
                    owner_id=owner_id,
                    sync_type=sync_type,
                    options=options,
                    records=records,
                    offset=offset,
                    parent_id=root_id,
                )
            except Exception as e:
                logger.error(f"Could not schedule continuation job {child.id}: {e}")
                await self.write_final_status(
                    child.id,  # type: ignore[arg-type]
                    SyncStatus.ERROR,
                    "Continuation could not be scheduled",
                    error_details=str(e),
                )
                raise

    def _reconciler_factory(self, owner_id: str) -> Callable[[], Any]:
        @asynccontextmanager
        async def open_reconciler() -> AsyncIterator[RecordReconciler]:
            async with self.session_factory() as db:
                yield RecordReconciler(db, owner_id)

        return open_reconciler
