import logging
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cancellation import cancellation_manager
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    JobNotFoundError,
    VitalisException,
)
from app.core.job_context import sync_logging_context
from app.core.tasks import get_task_queue
from app.models import SyncLog, SyncStatus, SyncType
from app.repositories.sync_log_repository import sync_log_repository
from app.services.sync import SyncOptions, SyncService

logger = logging.getLogger(__name__)

CANCELLED_BY_USER = "Sync cancelled by user"
CANCELLED_BY_PARENT = "Sync cancelled by user (parent job)"
CANCELLED_BY_RESET = "Sync cancelled by system reset"


def parse_job_id(raw: Union[str, int]) -> int:
    """Parse a job id from a request, raising InvalidInputError if malformed."""
    try:
        job_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInputError(
            "Malformed job id", field="job_id", value=raw
        ) from None
    if job_id < 1:
        raise InvalidInputError("Malformed job id", field="job_id", value=raw)
    return job_id


class SyncJobService:
    """Starts, inspects and cancels sync jobs for authenticated owners."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sync_service_factory: Optional[Callable[..., SyncService]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.sync_service_factory = sync_service_factory or SyncService

    async def start_sync(
        self,
        owner_id: str,
        sync_type: Optional[str],
        db: AsyncSession,
        parallel: Optional[bool] = None,
        batch_size: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ) -> SyncLog:
        """
        Create a sync job and queue it for background execution.

        Returns as soon as the job is queued; the sync itself runs later.

        Raises:
            InvalidInputError: Missing or unsupported sync type
            ConflictError: A sync of this type is already active for the owner
        """
        parsed_type = SyncType.parse(sync_type)
        if parsed_type is None:
            raise InvalidInputError(
                "Invalid or missing sync type", field="type", value=sync_type
            )

        active = await sync_log_repository.list_active(owner_id, db, parsed_type)
        if active:
            raise ConflictError(
                f"A {parsed_type.value} sync is already running",
                active_job_ids=[job.id for job in active],  # type: ignore[misc]
            )

        options = SyncOptions.from_settings(
            self.settings.sync,
            parallel=parallel,
            batch_size=batch_size,
            max_concurrent=max_concurrent,
        )
        job = await sync_log_repository.create(
            parsed_type,
            owner_id,
            db,
            message=f"{parsed_type.value.capitalize()} sync started",
        )
        job_id: int = job.id  # type: ignore[assignment]

        try:
            await self._submit(job_id, owner_id, parsed_type, options)
        except Exception as e:
            logger.error(f"Could not queue sync job {job_id}: {e}")
            await sync_log_repository.advance(
                job_id,
                SyncStatus.ERROR,
                db,
                message="Sync could not be started",
                error_details=str(e),
            )
            raise VitalisException("Failed to start sync job") from e

        logger.info(f"Created {parsed_type.value} sync job {job_id} for {owner_id}")
        return job

    async def continue_job(
        self,
        job_id: int,
        owner_id: str,
        sync_type: SyncType,
        options: SyncOptions,
        records: List[Dict[str, Any]],
        offset: int,
        parent_id: Optional[int],
    ) -> None:
        """Queue a continuation job created by a run that handed off."""
        await self._submit(
            job_id, owner_id, sync_type, options, records, offset, parent_id
        )

    async def _submit(
        self,
        job_id: int,
        owner_id: str,
        sync_type: SyncType,
        options: SyncOptions,
        records: Optional[List[Dict[str, Any]]] = None,
        offset: int = 0,
        parent_id: Optional[int] = None,
    ) -> str:
        cancellation_manager.create_token(job_id)
        try:
            return await get_task_queue().submit(
                self.execute_job,
                job_id,
                owner_id,
                sync_type,
                options,
                records,
                offset,
                parent_id,
                name=f"sync_{sync_type.value}_{job_id}",
                job_id=job_id,
            )
        except Exception:
            cancellation_manager.remove_token(job_id)
            raise

    async def execute_job(
        self,
        job_id: int,
        owner_id: str,
        sync_type: SyncType,
        options: SyncOptions,
        records: Optional[List[Dict[str, Any]]] = None,
        offset: int = 0,
        parent_id: Optional[int] = None,
    ) -> None:
        """Background entry point of one sync job run."""
        token = cancellation_manager.get_token(job_id)
        if token is None:
            token = cancellation_manager.create_token(job_id)

        with sync_logging_context(job_id, sync_type.value, owner_id, parent_id):
            try:
                service = self.sync_service_factory(on_continue=self.continue_job)
                await service.run(
                    job_id,
                    owner_id,
                    sync_type,
                    options=options,
                    cancellation_token=token,
                    records=records,
                    offset=offset,
                    parent_id=parent_id,
                )
            finally:
                cancellation_manager.remove_token(job_id)

    async def get_job(
        self, job_id: Union[str, int], owner_id: str, db: AsyncSession
    ) -> SyncLog:
        """
        Get a job of the caller.

        Raises:
            InvalidInputError: Malformed job id
            JobNotFoundError: No such job
            AuthorizationError: The job belongs to another owner
        """
        parsed_id = parse_job_id(job_id)
        job = await sync_log_repository.get(parsed_id, db)
        if job is None:
            raise JobNotFoundError(parsed_id)
        if job.owner_id != owner_id:
            raise AuthorizationError("You do not have access to this sync job")
        return job

    async def cancel_job(
        self, job_id: Union[str, int], owner_id: str, db: AsyncSession
    ) -> Dict[str, Any]:
        """Cancel a job of the caller together with its continuation jobs."""
        job = await self.get_job(job_id, owner_id, db)
        if job.is_finished():
            return {
                "success": True,
                "message": f"Sync already {job.status}",
                "cancelled_ids": [],
            }

        cancelled = await sync_log_repository.mark_cancelled(
            job.id,  # type: ignore[arg-type]
            db,
            message=CANCELLED_BY_USER,
            child_message=CANCELLED_BY_PARENT,
        )
        self._stop_running(cancelled)

        logger.info(f"Cancelled sync jobs {cancelled} for {owner_id}")
        return {
            "success": True,
            "message": "Sync cancelled" if cancelled else f"Sync already {job.status}",
            "cancelled_ids": cancelled,
        }

    async def list_active(self, owner_id: str, db: AsyncSession) -> List[SyncLog]:
        return await sync_log_repository.list_active(owner_id, db)

    async def list_history(
        self, owner_id: str, db: AsyncSession, limit: Optional[int] = None
    ) -> List[SyncLog]:
        return await sync_log_repository.list_recent(
            owner_id, db, limit=limit or self.settings.sync.history_limit
        )

    async def purge_history(
        self, owner_id: str, db: AsyncSession, force: bool = False
    ) -> Dict[str, Any]:
        """
        Delete the caller's finished jobs.

        Without ``force`` the purge is refused while jobs are active. Active
        jobs are never deleted either way.
        """
        active = await sync_log_repository.list_active(owner_id, db)
        if active and not force:
            raise ConflictError(
                "There are active syncs; finish or cancel them first, or force the purge",
                active_job_ids=[job.id for job in active],  # type: ignore[misc]
            )

        deleted = await sync_log_repository.purge_terminal(owner_id, db)
        logger.info(f"Purged {deleted} sync jobs for {owner_id}")
        return {"success": True, "deleted": deleted, "active_preserved": len(active)}

    async def reset(self, owner_id: str, db: AsyncSession) -> Dict[str, Any]:
        """Cancel every active job of the caller."""
        cancelled: List[int] = []
        for job in await sync_log_repository.list_active(owner_id, db):
            cancelled.extend(
                await sync_log_repository.mark_cancelled(
                    job.id,  # type: ignore[arg-type]
                    db,
                    message=CANCELLED_BY_RESET,
                    child_message=CANCELLED_BY_RESET,
                )
            )
        self._stop_running(cancelled)

        logger.info(f"Reset cancelled {len(cancelled)} sync jobs for {owner_id}")
        return {"success": True, "cancelled_ids": cancelled}

    def _stop_running(self, job_ids: List[int]) -> None:
        queue = get_task_queue()
        for job_id in job_ids:
            cancellation_manager.cancel_job(job_id)
            # Queued tasks will never run, so nothing else releases their token
            if queue.cancel_pending(job_id):
                cancellation_manager.remove_token(job_id)


# Global instance
sync_job_service = SyncJobService()
