import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from saaskit.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

logger = logging.getLogger(__name__)


def _request_path(request: Request) -> str:
    # Route template keeps metric labels bounded.
    route = request.scope.get("route")
    if route and hasattr(route, "path"):
        return route.path
    return request.url.path


def _record(request: Request, path: str, status_code: int, duration_ms: float) -> None:
    status = str(status_code)
    REQUEST_COUNT.labels(request.method, path, status).inc()
    REQUEST_LATENCY.labels(request.method, path, status).observe(duration_ms / 1000.0)
    if status_code >= 500:
        REQUEST_ERRORS.labels(request.method, path, status).inc()


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation, access logging and HTTP metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.monotonic() - start) * 1000.0
            path = _request_path(request)
            _record(request, path, 500, duration_ms)
            logger.exception(
                "request_failed",
                extra={
                    "request_id": request_id,
                    "path": path,
                    "method": request.method,
                    "status": 500,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            raise
        duration_ms = (time.monotonic() - start) * 1000.0
        path = _request_path(request)
        _record(request, path, response.status_code, duration_ms)
        logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "path": path,
                "method": request.method,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        response.headers["x-request-id"] = request_id
        return response
