"""Sync log model: the persisted ledger of synchronization jobs."""

import enum
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from app.models.base import BaseModel


class SyncType(str, enum.Enum):
    """Entity type a sync job ingests."""

    COMPANY = "company"
    EMPLOYEE = "employee"
    ABSENTEEISM = "absenteeism"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SyncType"]:
        """Return the matching member or None for unknown values."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class SyncStatus(str, enum.Enum):
    """Status of a sync job."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PROCESSING = "processing"
    # Remaining records were handed to a continuation job
    CONTINUES = "continues"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset(
    {SyncStatus.PENDING, SyncStatus.IN_PROGRESS, SyncStatus.PROCESSING}
)
TERMINAL_STATUSES = frozenset(
    {SyncStatus.COMPLETED, SyncStatus.ERROR, SyncStatus.CANCELLED}
)

STATUS_RANK: Dict[SyncStatus, int] = {
    SyncStatus.PENDING: 0,
    SyncStatus.IN_PROGRESS: 1,
    SyncStatus.PROCESSING: 2,
    SyncStatus.CONTINUES: 3,
    SyncStatus.COMPLETED: 4,
    SyncStatus.ERROR: 4,
    SyncStatus.CANCELLED: 4,
}


def is_transition_allowed(current: SyncStatus, target: SyncStatus) -> bool:
    """
    Check whether a job may move from ``current`` to ``target``.

    Terminal statuses never change. A job that handed its work to a
    continuation may only be cancelled. Otherwise the status may stay where it
    is or move forward.
    """
    if current in TERMINAL_STATUSES:
        return False
    if current == SyncStatus.CONTINUES:
        return target == SyncStatus.CANCELLED
    return STATUS_RANK[target] >= STATUS_RANK[current]


class SyncLog(BaseModel):
    """
    One synchronization job run.

    Progress, status and cancellation requests all live on this row. A
    continuation job points at the root job through ``parent_id``.
    """

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False, index=True)
    status = Column(
        String(32), nullable=False, default=SyncStatus.PENDING.value, index=True
    )
    owner_id = Column(String(64), nullable=False, index=True)

    total_records = Column(Integer, nullable=True)
    processed_records = Column(Integer, nullable=False, default=0)
    batch = Column(Integer, nullable=True)
    total_batches = Column(Integer, nullable=True)

    message = Column(Text, nullable=True)
    error_details = Column(Text, nullable=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True, index=True)

    parent_id = Column(
        Integer,
        ForeignKey("sync_logs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        Index("idx_sync_logs_owner_status", "owner_id", "status"),
        Index("idx_sync_logs_owner_created", "owner_id", "created_at"),
    )

    @property
    def status_enum(self) -> SyncStatus:
        return SyncStatus(self.status)

    def is_active(self) -> bool:
        """Check if the job is still pending or running."""
        return self.status_enum in ACTIVE_STATUSES

    def is_finished(self) -> bool:
        """Check if the job reached a terminal status."""
        return self.status_enum in TERMINAL_STATUSES

    @property
    def progress_percent(self) -> int:
        """Processed share of the record set, 0-100."""
        if not self.total_records:
            return 100 if self.is_finished() and self.total_records == 0 else 0
        return min(100, int((self.processed_records or 0) * 100 / self.total_records))

    def get_duration_seconds(self) -> Optional[float]:
        """Get job duration in seconds."""
        if not self.started_at:
            return None
        end_time = self.completed_at or datetime.utcnow()
        return (end_time - self.started_at).total_seconds()  # type: ignore[operator]

    def to_dict(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        data = super().to_dict(exclude)
        data["progress"] = self.progress_percent
        data["duration_seconds"] = self.get_duration_seconds()
        return data
