from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.config import SyncSettings

# Per-job cap on stored record errors
MAX_RECORDED_ERRORS = 50


@dataclass
class SyncOptions:
    """Tuning for one sync run, defaulting to the configured values."""

    parallel: bool = False
    batch_size: int = 100
    max_concurrent: int = 5
    progress_interval: int = 10
    batch_delay: float = 0.0
    max_run_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: SyncSettings, **overrides: Any) -> "SyncOptions":
        values: Dict[str, Any] = {
            "parallel": settings.parallel,
            "batch_size": settings.batch_size,
            "max_concurrent": settings.max_concurrent,
            "progress_interval": settings.progress_interval,
            "batch_delay": settings.batch_delay_seconds,
            "max_run_seconds": settings.max_run_seconds,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parallel": self.parallel,
            "batch_size": self.batch_size,
            "max_concurrent": self.max_concurrent,
            "progress_interval": self.progress_interval,
            "batch_delay": self.batch_delay,
            "max_run_seconds": self.max_run_seconds,
        }


@dataclass
class SyncError:
    record_index: int
    error_message: str
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SyncResult:
    job_id: Optional[int]
    sync_type: str
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    total_records: int = 0
    processed_records: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    # Index of the first record not processed when the run was handed off
    continue_from: Optional[int] = None
    errors: List[SyncError] = field(default_factory=list)

    @property
    def continued(self) -> bool:
        return self.continue_from is not None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def record_success(self) -> None:
        self.processed_records += 1
        self.succeeded += 1

    def record_failure(self, index: int, message: str) -> None:
        self.processed_records += 1
        self.failed += 1
        if len(self.errors) < MAX_RECORDED_ERRORS:
            self.errors.append(SyncError(record_index=index, error_message=message))

    def merge(self, other: "SyncResult") -> None:
        """Add the counters of a batch result to this result."""
        self.processed_records += other.processed_records
        self.succeeded += other.succeeded
        self.failed += other.failed
        room = MAX_RECORDED_ERRORS - len(self.errors)
        if room > 0:
            self.errors.extend(other.errors[:room])

    def complete(self) -> None:
        self.completed_at = datetime.utcnow()

    def summary_message(self) -> str:
        """Final status message with the record counts."""
        message = (
            f"{self.sync_type.capitalize()} sync finished: {self.succeeded} of "
            f"{self.total_records} records processed successfully"
        )
        if self.failed:
            message += f", {self.failed} failed"
        return message
