"""
Database models package.

This module imports and exports all database models to ensure they are
registered with SQLAlchemy when the application starts.
"""

from app.models.absenteeism import Absenteeism
from app.models.api_credential import ApiCredential
from app.models.base import BaseModel
from app.models.company import Company
from app.models.employee import Employee
from app.models.sync_log import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    SyncLog,
    SyncStatus,
    SyncType,
)

__all__ = [
    # Base
    "BaseModel",
    # Models
    "Absenteeism",
    "ApiCredential",
    "Company",
    "Employee",
    "SyncLog",
    # Enums and status sets
    "SyncStatus",
    "SyncType",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
]
