from .batch_scheduler import BatchScheduler
from .models import SyncError, SyncOptions, SyncResult
from .progress import JobReporter, ProgressAggregator
from .reconciler import RecordReconciler
from .scheduler import SyncScheduler, sync_scheduler
from .sync_service import SyncService

__all__ = [
    "BatchScheduler",
    "JobReporter",
    "ProgressAggregator",
    "RecordReconciler",
    "SyncError",
    "SyncOptions",
    "SyncResult",
    "SyncScheduler",
    "SyncService",
    "sync_scheduler",
]
