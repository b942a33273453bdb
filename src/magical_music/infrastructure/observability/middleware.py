"""Middleware for observability: request/response logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from magical_music.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me, this is the OUTERMOST layer of the request pipeline, so its one log line covers
# CORS, body parsing, auth, upload staging and the handler. Liveness probes hit /health every few
# seconds; those are logged at DEBUG so they don't bury real traffic.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    quiet_paths: frozenset[str] = frozenset({"/health", "/health/ready"})

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get(CORRELATION_HEADER))

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                f"✗ {method} {path} FAILED ({duration_ms:.0f}ms)",
                extra={
                    "method": method,
                    "path": path,
                    "client_ip": client_ip,
                    "duration_ms": int(duration_ms),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        status_emoji = "✓" if response.status_code < 400 else "✗"
        log = logger.debug if path in self.quiet_paths else logger.info
        log(
            f"{status_emoji} {method} {path} → {response.status_code} ({duration_ms:.0f}ms)",
            extra={
                "method": method,
                "path": path,
                "client_ip": client_ip,
                "status_code": response.status_code,
                "duration_ms": int(duration_ms),
            },
        )

        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
