"""Persistence for sync jobs.

All status and progress writes go through single ``UPDATE`` statements guarded
by the current row state, so concurrent writers (batches, cancel requests, the
stale sweep) cannot move a job backwards or out of a terminal status.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, delete, desc, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.sync_log import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    SyncLog,
    SyncStatus,
    SyncType,
    is_transition_allowed,
)

logger = logging.getLogger(__name__)

# Attempts when another writer changes the status between read and update
_CAS_ATTEMPTS = 3


def _values(statuses: Any) -> List[str]:
    return [s.value for s in statuses]


class SyncLogRepository:
    """Repository for sync job persistence and retrieval."""

    async def create(
        self,
        sync_type: SyncType,
        owner_id: str,
        db: AsyncSession,
        parent_id: Optional[int] = None,
        status: SyncStatus = SyncStatus.PENDING,
        message: Optional[str] = None,
        **fields: Any,
    ) -> SyncLog:
        """Create a sync job row."""
        job = SyncLog(
            type=sync_type.value,
            status=status.value,
            owner_id=owner_id,
            parent_id=parent_id,
            message=message,
            processed_records=fields.pop("processed_records", 0),
            **fields,
        )
        if status != SyncStatus.PENDING:
            job.started_at = datetime.utcnow()  # type: ignore[assignment]
        db.add(job)
        await db.commit()
        await db.refresh(job)
        return job

    async def get(self, job_id: int, db: AsyncSession) -> Optional[SyncLog]:
        """Get a job by id with fresh column values."""
        result = await db.execute(
            select(SyncLog)
            .where(SyncLog.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def advance(
        self,
        job_id: int,
        status: SyncStatus,
        db: AsyncSession,
        message: Optional[str] = None,
        error_details: Optional[str] = None,
        **fields: Any,
    ) -> bool:
        """
        Move a job to ``status``.

        Args:
            job_id: Job to update
            status: Target status
            db: Database session
            message: Optional new progress message
            error_details: Optional error description
            **fields: Extra columns to set alongside the status

        Returns:
            True when the transition was applied, False when the job does not
            exist or the transition is not allowed from its current status.
        """
        for _ in range(_CAS_ATTEMPTS):
            job = await self.get(job_id, db)
            if job is None:
                return False

            current = SyncStatus(job.status)
            if not is_transition_allowed(current, status):
                logger.debug(
                    f"Ignoring transition of sync job {job_id} "
                    f"from {current.value} to {status.value}"
                )
                return False

            now = datetime.utcnow()
            values: dict = {"status": status.value, "updated_at": now, **fields}
            if message is not None:
                values["message"] = message
            if error_details is not None:
                values["error_details"] = error_details
            if status in (SyncStatus.IN_PROGRESS, SyncStatus.PROCESSING):
                if job.started_at is None:
                    values["started_at"] = now
            if (
                status in TERMINAL_STATUSES or status == SyncStatus.CONTINUES
            ) and job.completed_at is None:
                values["completed_at"] = now

            result = await db.execute(
                update(SyncLog)
                .where(SyncLog.id == job_id, SyncLog.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if result.rowcount == 1:
                return True

        logger.warning(f"Sync job {job_id} kept changing; giving up on {status.value}")
        return False

    async def bump_progress(
        self,
        job_id: int,
        db: AsyncSession,
        delta: Optional[int] = None,
        absolute: Optional[int] = None,
    ) -> None:
        """
        Raise the processed-record counter.

        ``delta`` increments the stored value atomically; ``absolute`` is a
        snapshot. Either way the counter never decreases, never exceeds
        ``total_records`` and is left alone once the job has finished.
        """
        if (delta is None) == (absolute is None):
            raise ValueError("Pass exactly one of delta or absolute")
        if delta is not None and delta < 0:
            raise ValueError("Progress delta cannot be negative")

        current = SyncLog.processed_records
        candidate = current + delta if delta is not None else literal(absolute)
        candidate = case((candidate > current, candidate), else_=current)
        clamped = case(
            (
                and_(
                    SyncLog.total_records.isnot(None),
                    candidate > SyncLog.total_records,
                ),
                SyncLog.total_records,
            ),
            else_=candidate,
        )

        await db.execute(
            update(SyncLog)
            .where(SyncLog.id == job_id, SyncLog.completed_at.is_(None))
            .values(processed_records=clamped, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    async def set_total(self, job_id: int, total: int, db: AsyncSession) -> None:
        """Record the size of the fetched record set."""
        await self._update_running(job_id, db, total_records=total)

    async def update_batch(
        self,
        job_id: int,
        batch: int,
        total_batches: int,
        db: AsyncSession,
        message: Optional[str] = None,
    ) -> None:
        """Record which batch is being processed."""
        values: dict = {"batch": batch, "total_batches": total_batches}
        if message is not None:
            values["message"] = message
        await self._update_running(job_id, db, **values)

    async def set_message(self, job_id: int, message: str, db: AsyncSession) -> None:
        await self._update_running(job_id, db, message=message)

    async def _update_running(self, job_id: int, db: AsyncSession, **values: Any) -> None:
        """Update columns of a job that has not finished yet."""
        values["updated_at"] = datetime.utcnow()
        await db.execute(
            update(SyncLog)
            .where(SyncLog.id == job_id, SyncLog.completed_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    async def is_cancelled(self, job_id: int, db: AsyncSession) -> bool:
        """Check the persisted status for a cancellation request."""
        result = await db.execute(select(SyncLog.status).where(SyncLog.id == job_id))
        return result.scalar_one_or_none() == SyncStatus.CANCELLED.value

    async def mark_cancelled(
        self,
        job_id: int,
        db: AsyncSession,
        message: str = "Sync cancelled by user",
        child_message: str = "Sync cancelled by user (parent job)",
    ) -> List[int]:
        """
        Cancel a job and every job descending from it.

        Returns:
            Ids of the jobs whose status was changed to cancelled
        """
        cancelled: List[int] = []
        if await self.advance(job_id, SyncStatus.CANCELLED, db, message=message):
            cancelled.append(job_id)

        seen = {job_id}
        frontier = [job_id]
        while frontier:
            result = await db.execute(
                select(SyncLog.id).where(SyncLog.parent_id.in_(frontier))
            )
            children = [cid for cid in result.scalars().all() if cid not in seen]
            for child_id in children:
                seen.add(child_id)
                if await self.advance(
                    child_id, SyncStatus.CANCELLED, db, message=child_message
                ):
                    cancelled.append(child_id)
            frontier = children

        return cancelled

    async def list_active(
        self,
        owner_id: str,
        db: AsyncSession,
        sync_type: Optional[SyncType] = None,
    ) -> List[SyncLog]:
        """Get the owner's pending and running jobs, newest first."""
        query = select(SyncLog).where(
            SyncLog.owner_id == owner_id,
            SyncLog.status.in_(_values(ACTIVE_STATUSES)),
            SyncLog.completed_at.is_(None),
        )
        if sync_type:
            query = query.where(SyncLog.type == sync_type.value)

        result = await db.execute(
            query.order_by(desc(SyncLog.created_at), desc(SyncLog.id)).execution_options(
                populate_existing=True
            )
        )
        return list(result.scalars().all())

    async def list_recent(
        self, owner_id: str, db: AsyncSession, limit: int = 20
    ) -> List[SyncLog]:
        """Get the owner's most recent jobs in any status."""
        result = await db.execute(
            select(SyncLog)
            .where(SyncLog.owner_id == owner_id)
            .order_by(desc(SyncLog.created_at), desc(SyncLog.id))
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def purge_terminal(self, owner_id: str, db: AsyncSession) -> int:
        """
        Delete the owner's finished jobs. Active jobs are never touched.

        A ``continues`` job is kept while any job descending from it is still
        active, so its id stays valid for polling and cascading cancellation.
        """
        result = await db.execute(
            select(SyncLog.id, SyncLog.status, SyncLog.parent_id).where(
                SyncLog.owner_id == owner_id
            )
        )
        status_of: Dict[int, SyncStatus] = {}
        children: Dict[int, List[int]] = {}
        for job_id, status, parent_id in result.all():
            status_of[job_id] = SyncStatus(status)
            if parent_id is not None:
                children.setdefault(parent_id, []).append(job_id)

        def has_active_descendant(job_id: int) -> bool:
            seen = {job_id}
            frontier = [job_id]
            while frontier:
                next_frontier = []
                for parent in frontier:
                    for child_id in children.get(parent, []):
                        if child_id in seen:
                            continue
                        seen.add(child_id)
                        if status_of[child_id] in ACTIVE_STATUSES:
                            return True
                        next_frontier.append(child_id)
                frontier = next_frontier
            return False

        purgeable = [
            job_id
            for job_id, status in status_of.items()
            if status in TERMINAL_STATUSES
            or (status == SyncStatus.CONTINUES and not has_active_descendant(job_id))
        ]
        if not purgeable:
            return 0

        result = await db.execute(
            delete(SyncLog)
            .where(
                SyncLog.owner_id == owner_id,
                SyncLog.id.in_(purgeable),
                SyncLog.completed_at.isnot(None),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0

    async def find_stale(
        self, db: AsyncSession, updated_before: datetime
    ) -> List[SyncLog]:
        """Get active jobs of any owner with no update since ``updated_before``."""
        result = await db.execute(
            select(SyncLog)
            .where(
                SyncLog.status.in_(_values(ACTIVE_STATUSES)),
                SyncLog.updated_at < updated_before,
            )
            .order_by(SyncLog.updated_at)
        )
        return list(result.scalars().all())


# Global instance
sync_log_repository = SyncLogRepository()
