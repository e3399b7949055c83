"""Prometheus HTTP metrics middleware."""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from quizsync.observability.metrics import http_request_duration_seconds, http_requests_total

UNMATCHED_ROUTE = "unmatched"


def _route_label(request: Request) -> str:
    """Route template (``/v1/sync-progress``) rather than the raw path, to bound label cardinality."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


class PrometheusMetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        route = _route_label(request)
        start = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            http_requests_total.labels(method=request.method, route=route, status=status_code).inc()
            http_request_duration_seconds.labels(method=request.method, route=route).observe(
                time.perf_counter() - start
            )
