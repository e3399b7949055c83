"""Error handling and the uniform response envelope.

Every error leaves the API as::

    {"success": false, "error": {"code", "message", "details", "request_id"}}
"""

import uuid
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from quizsync.core.logging import get_logger
from quizsync.sync.errors import (
    BatchTooLargeError,
    InvalidStatusTransitionError,
    InvalidUpdateError,
    NoValidUpdatesError,
    SessionNotFoundError,
    SyncDisabledError,
    SyncError,
)

logger = get_logger(__name__)

SYNC_ERROR_STATUS: dict[type[SyncError], int] = {
    BatchTooLargeError: status.HTTP_400_BAD_REQUEST,
    SyncDisabledError: status.HTTP_400_BAD_REQUEST,
    InvalidStatusTransitionError: status.HTTP_400_BAD_REQUEST,
    InvalidUpdateError: status.HTTP_400_BAD_REQUEST,
    NoValidUpdatesError: status.HTTP_400_BAD_REQUEST,
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
}


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={"code": code, "message": message, "details": details},
        )
        self.code = code
        self.message = message
        self.details = details


class ErrorBody(BaseModel):
    """Error part of the envelope."""

    code: str
    message: str
    details: Any | None = None
    request_id: str | None = None


class ErrorEnvelope(BaseModel):
    """Envelope returned for every failed request."""

    success: bool = False
    error: ErrorBody


def get_request_id(request: Request) -> str:
    """Get request ID from request state or generate new one."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(
            error=ErrorBody(
                code=code,
                message=message,
                details=details,
                request_id=get_request_id(request),
            )
        ).model_dump(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors as 400 with field-level detail."""
    details: list[dict[str, Any]] = []
    for error in exc.errors():
        ctx = error.get("ctx") or {}
        d: dict[str, Any] = {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "issue": error.get("msg", "Validation error"),
            "type": error.get("type", "validation_error"),
        }
        lim = ctx.get("max_length") or ctx.get("le") or ctx.get("ge")
        if isinstance(lim, (int, float)):
            d["limit"] = lim
        details.append(d)

    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "INVALID_REQUEST",
        "Invalid request data",
        details,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions (AppError carries a structured code)."""
    if isinstance(exc, AppError):
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    details = None
    code = "HTTP_ERROR"
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        code = exc.detail["code"]
        message = exc.detail.get("message", "An error occurred")
        details = exc.detail.get("details")
    elif isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = str(exc.detail)

    if exc.status_code == status.HTTP_404_NOT_FOUND and code == "HTTP_ERROR":
        code = "NOT_FOUND"
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        code = "METHOD_NOT_ALLOWED"

    return error_response(request, exc.status_code, code, message, details)


async def sync_exception_handler(request: Request, exc: SyncError) -> JSONResponse:
    """Handle request-level sync failures raised by the domain layer."""
    status_code = SYNC_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return error_response(request, status_code, exc.code, exc.message, exc.details)


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Whole-request storage failures; the client retries the request later."""
    logger.error(
        "Storage failure",
        extra={"request_id": get_request_id(request), "error": str(exc)},
        exc_info=True,
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "SYNC_FAILED",
        "Progress sync failed, retry later",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions (500)."""
    # In production, don't expose internal error details
    from quizsync.core.config import settings

    if settings.ENV == "prod":
        message = "An internal server error occurred"
        details = None
    else:
        message = str(exc)
        details = {"type": type(exc).__name__}

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        message,
        details,
    )
