"""
Cancellation tokens for running sync jobs.

A token is created when a job is submitted and handed to every layer that
processes records. Cancelling through the manager flips the token of the job
(and of any continuation jobs) so the batch scheduler stops before the next
record.
"""

from typing import Dict, Optional


class CancellationToken:
    """Token that can be used to check if a job should be cancelled."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        """Mark this token as cancelled."""
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        """Check if the token has been cancelled."""
        return self._cancelled


class CancellationTokenManager:
    """Manages cancellation tokens for sync jobs."""

    def __init__(self) -> None:
        self._tokens: Dict[int, CancellationToken] = {}

    def create_token(self, job_id: int) -> CancellationToken:
        """Create a new cancellation token for a job."""
        token = CancellationToken()
        self._tokens[job_id] = token
        return token

    def get_token(self, job_id: int) -> Optional[CancellationToken]:
        """Get the cancellation token for a job."""
        return self._tokens.get(job_id)

    def cancel_job(self, job_id: int) -> bool:
        """Cancel a job by its ID. Returns False if the job runs elsewhere."""
        token = self._tokens.get(job_id)
        if token:
            token.cancel()
            return True
        return False

    def remove_token(self, job_id: int) -> None:
        """Remove a token after job completion."""
        self._tokens.pop(job_id, None)


# Global instance
cancellation_manager = CancellationTokenManager()
