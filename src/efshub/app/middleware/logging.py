"""Request logging middleware.

Provides canonical log line per request with trace ID propagation.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from efshub.app.config import get_settings
from efshub.app.logging import clear_trace_context, set_trace_id
from efshub.app.metrics.collector import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from efshub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)
_settings = get_settings()
_logging_config = _settings.logging

_PREFIX = "/v1/efs"

# Path normalization patterns (replace dynamic segments with placeholders), most specific first
_PATH_PATTERNS = [
    (
        re.compile(rf"^{_PREFIX}/[^/]+/filesystems/[^/]+/[^/]+/(users|aps)/[^/]+$"),
        rf"{_PREFIX}/:account/filesystems/:group/:id/\1/:sub",
    ),
    (
        re.compile(rf"^{_PREFIX}/[^/]+/filesystems/[^/]+/[^/]+/(users|aps)$"),
        rf"{_PREFIX}/:account/filesystems/:group/:id/\1",
    ),
    (
        re.compile(rf"^{_PREFIX}/[^/]+/filesystems/[^/]+/[^/]+$"),
        f"{_PREFIX}/:account/filesystems/:group/:id",
    ),
    (
        re.compile(rf"^{_PREFIX}/[^/]+/filesystems/[^/]+$"),
        f"{_PREFIX}/:account/filesystems/:group",
    ),
    (
        re.compile(rf"^{_PREFIX}/[^/]+/filesystems$"),
        f"{_PREFIX}/:account/filesystems",
    ),
]

# Whitelist of known endpoints for metrics (cardinality control)
_KNOWN_ENDPOINTS = frozenset({
    f"{_PREFIX}/ping",
    f"{_PREFIX}/version",
    f"{_PREFIX}/flywheel",
    # Filesystems
    f"{_PREFIX}/:account/filesystems",
    f"{_PREFIX}/:account/filesystems/:group",
    f"{_PREFIX}/:account/filesystems/:group/:id",
    # Sub-resources
    f"{_PREFIX}/:account/filesystems/:group/:id/users",
    f"{_PREFIX}/:account/filesystems/:group/:id/users/:sub",
    f"{_PREFIX}/:account/filesystems/:group/:id/aps",
    f"{_PREFIX}/:account/filesystems/:group/:id/aps/:sub",
})

_SKIP_PATHS = ("/health", f"{_PREFIX}/metrics", f"{_PREFIX}/ping")


def _normalize_path(path: str) -> str:
    """Normalize path and apply whitelist for cardinality control."""
    for pattern, replacement in _PATH_PATTERNS:
        normalized, count = pattern.subn(replacement, path)
        if count:
            path = normalized
            break
    return path if path in _KNOWN_ENDPOINTS else "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging with trace ID propagation.

    Features:
    - Sets trace_id from X-Trace-ID header or generates new one
    - Logs canonical request log line (one per request)
    - Records HTTP metrics with normalized endpoint labels
    - Adds X-Trace-ID header to response

    Usage:
        app.add_middleware(LoggingMiddleware)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = set_trace_id(request.headers.get("x-trace-id"))
        path = request.url.path

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.monotonic() - start) * 1000
            logger.error(
                "Request failed",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "method": request.method,
                    "path": path,
                    "duration_ms": duration_ms,
                    "trace_id": trace_id,
                },
            )
            raise
        finally:
            clear_trace_context()

        duration_seconds = time.monotonic() - start
        duration_ms = duration_seconds * 1000

        if path not in _SKIP_PATHS:
            endpoint = _normalize_path(path)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=endpoint,
                status=str(response.status_code),
            ).inc()
            HTTP_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration_seconds)

            logger.info(
                "Request completed",
                extra={
                    "event": LogEvent.REQUEST_COMPLETE,
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": trace_id,
                },
            )

            if duration_ms > _logging_config.slow_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    extra={
                        "event": LogEvent.REQUEST_SLOW,
                        "method": request.method,
                        "path": path,
                        "status": response.status_code,
                        "duration_ms": duration_ms,
                        "threshold_ms": _logging_config.slow_threshold_ms,
                        "trace_id": trace_id,
                    },
                )

        response.headers["X-Trace-ID"] = trace_id
        return response
