"""
Custom exception classes for the Vitalis sync service.
"""

from typing import Any, Dict, List, Optional


class VitalisException(Exception):
    """Base exception for the application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Error message
            status_code: HTTP status code
            error_code: Application-specific error code
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class NotFoundError(VitalisException):
    """Resource not found error."""

    def __init__(self, resource: str, resource_id: Any):
        """
        Initialize not found error.

        Args:
            resource: Resource type (e.g., "SyncJob")
            resource_id: Resource identifier
        """
        super().__init__(
            message=f"{resource} with id '{resource_id}' not found",
            status_code=404,
            error_code="RESOURCE_NOT_FOUND",
            details={"resource": resource, "resource_id": str(resource_id)},
        )


class JobNotFoundError(NotFoundError):
    """Sync job not found."""

    def __init__(self, job_id: Any):
        super().__init__("SyncJob", job_id)


class InvalidInputError(VitalisException):
    """Request input is missing or unsupported."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        """
        Initialize invalid input error.

        Args:
            message: Error message
            field: Field that failed validation
            value: Invalid value
        """
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_INPUT",
            details=details,
        )


class AuthenticationError(VitalisException):
    """Authentication error."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message, status_code=401, error_code="AUTHENTICATION_ERROR"
        )


class AuthorizationError(VitalisException):
    """Authorization error."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message, status_code=403, error_code="AUTHORIZATION_ERROR"
        )


class ConflictError(VitalisException):
    """Operation conflicts with jobs that are still running."""

    def __init__(self, message: str, active_job_ids: Optional[List[int]] = None):
        """
        Initialize conflict error.

        Args:
            message: Error message
            active_job_ids: Ids of the jobs causing the conflict
        """
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details={"active_job_ids": active_job_ids or []},
        )

