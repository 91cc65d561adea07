"""Custom exceptions for SOC export operations."""

from typing import Optional


class SocException(Exception):
    """Base exception for all SOC-related errors."""

    pass


class CredentialsNotFoundError(SocException):
    """Raised when the owner has no stored credentials for an export."""

    pass


class SourceUnavailableError(SocException):
    """Raised when SOC cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SourceTimeoutError(SocException):
    """Raised when SOC does not answer within the hard timeout."""

    pass


class InvalidResponseFormatError(SocException):
    """Raised when the payload is not a JSON array of objects."""

    def __init__(self, message: str, raw_excerpt: str = ""):
        super().__init__(message)
        self.raw_excerpt = raw_excerpt

    def __str__(self) -> str:
        base = super().__str__()
        if self.raw_excerpt:
            return f"{base}: {self.raw_excerpt}"
        return base
