"""
HTTP middleware for the Vitalis sync API.

Every request gets an id, taken from ``X-Request-ID`` when the caller sends a
usable one, and one access log line once the response is ready. The
authentication dependency and the sync routes leave the caller and the sync
job they touched on ``request.state`` so the access line can name them.
"""

import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"
MAX_REQUEST_ID_LENGTH = 128

# Liveness probes; logged at DEBUG
QUIET_PATHS = frozenset({"/health", "/api/health"})


def resolve_request_id(request: Request) -> str:
    """Caller supplied request id, or a fresh one when it is missing or unusable."""
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return uuid.uuid4().hex


def request_sync_id(request: Request) -> Optional[str]:
    """Sync job a request touched: set by the route, else the ``job_id`` path param."""
    sync_id = getattr(request.state, "sync_id", None)
    if sync_id is None:
        sync_id = request.path_params.get("job_id")
    return str(sync_id) if sync_id is not None else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag requests with an id and log them with their caller and sync job."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = f"{elapsed:.3f}"

        fields = self.access_fields(request, response.status_code, elapsed)
        summary = f"{request.method} {request.url.path} {response.status_code}"
        if "caller" in fields:
            summary += f" caller={fields['caller']}"
        if "sync_job_id" in fields:
            summary += f" sync_job={fields['sync_job_id']}"

        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(level, f"{summary} ({elapsed:.3f}s)", extra=fields)
        return response

    @staticmethod
    def access_fields(
        request: Request, status_code: int, elapsed: float
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "request_id": request.state.request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(elapsed * 1000, 1),
        }
        owner_id = getattr(request.state, "owner_id", None)
        if owner_id:
            fields["caller"] = owner_id
        sync_id = request_sync_id(request)
        if sync_id:
            fields["sync_job_id"] = sync_id
        return fields
