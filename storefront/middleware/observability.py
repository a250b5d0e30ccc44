from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from storefront.core.config import SLOW_REQUEST_MS
from storefront.core.metrics import InMemoryRequestMetrics, request_metrics
from storefront.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, then records its latency and outcome.

    Metrics are keyed by the matched route template (``/api/orders/{order_id}``)
    so ids in the path do not explode the series.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        metrics: InMemoryRequestMetrics = request_metrics,
        slow_request_ms: float = SLOW_REQUEST_MS,
    ) -> None:
        super().__init__(app)
        self.metrics = metrics
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            endpoint = _route_template(request)
            self.metrics.observe(endpoint=endpoint, method=request.method, status_code=status_code, duration_ms=duration_ms)

            level = logging.INFO
            if status_code >= 500 or duration_ms >= self.slow_request_ms:
                level = logging.WARNING
            logger.log(
                level,
                "request completed",
                extra={
                    "request_id": request_id,
                    "user_id": _user_id(request),
                    "endpoint": endpoint,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if response is not None:
                response.headers[REQUEST_ID_HEADER] = request_id
            clear_request_context()


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _user_id(request: Request) -> str | None:
    # Set by the auth dependencies once a session cookie resolves
    user_id = getattr(request.state, "user_id", None)
    return None if user_id is None else str(user_id)
