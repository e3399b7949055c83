"""Request ID middleware.

Every request carries an id in ``request.state.request_id``; it is echoed in
the ``X-Request-ID`` response header and in every error envelope so a device
report can be matched to server logs.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from quizsync.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Probes and scrapes would drown out sync traffic
QUIET_PATHS = frozenset({"/metrics", "/metrics/", "/v1/health", "/v1/ready"})


def _incoming_request_id(request: Request) -> str:
    candidate = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if candidate and len(candidate) <= MAX_REQUEST_ID_LENGTH:
        return candidate
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns the request id and logs request start and completion."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        quiet = request.url.path in QUIET_PATHS

        if not quiet:
            logger.info(
                "Request started",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                },
            )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": 500,
                    "latency_ms": int((time.perf_counter() - start) * 1000),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        if not quiet:
            logger.info(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "latency_ms": int((time.perf_counter() - start) * 1000),
                },
            )
        return response
