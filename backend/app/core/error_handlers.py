"""
Exception handlers for FastAPI application.

Every error answers with the same envelope::

    {"success": false, "error": {"message", "error_code", "details", "request_id"}}
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

if TYPE_CHECKING:
    from fastapi import FastAPI

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import VitalisException

logger = logging.getLogger(__name__)

# Map status codes to error codes
ERROR_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "UNPROCESSABLE_ENTITY",
    500: "INTERNAL_SERVER_ERROR",
}


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    error: Dict[str, Any] = {
        "message": message,
        "error_code": error_code,
        "request_id": request_id,
    }
    if details:
        error["details"] = details

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers={"X-Request-ID": request_id, **(headers or {})},
    )


async def vitalis_exception_handler(
    request: Request, exc: VitalisException
) -> JSONResponse:
    """
    Handle application exceptions.

    Args:
        request: Request object
        exc: VitalisException instance

    Returns:
        JSONResponse with error details
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Request failed: {exc.message}",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error_code": exc.error_code,
            "status_code": exc.status_code,
        },
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error_response(
        request, exc.status_code, exc.message, exc.error_code, exc.details, headers
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """
    Handle request validation errors as invalid input.

    Args:
        request: Request object
        exc: Validation error

    Returns:
        JSONResponse with validation error details
    """
    formatted_errors = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Validation error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "errors": formatted_errors,
        },
    )

    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Invalid request",
        "INVALID_INPUT",
        {"errors": formatted_errors},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSONResponse with error details
    """
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "status_code": exc.status_code,
        },
    )

    return _error_response(
        request,
        exc.status_code,
        str(exc.detail),
        ERROR_CODE_MAP.get(exc.status_code, "HTTP_ERROR"),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Any exception

    Returns:
        JSONResponse with generic error message
    """
    logger.exception(
        "Unexpected error occurred",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error_type": type(exc).__name__,
        },
    )

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(VitalisException, vitalis_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)
