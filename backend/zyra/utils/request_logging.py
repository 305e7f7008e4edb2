"""
Access log middleware - one structured line and one metric sample per request
"""

import logging
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from zyra.infrastructure.logging_config import trace_id_context
from zyra.utils.metrics import record_http_request

logger = logging.getLogger(__name__)

# Probes hit these every few seconds; they are logged at DEBUG only
QUIET_PATHS = frozenset(("/health", "/ready", "/metrics"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status, duration and client address with the
    request's trace_id, and feeds the HTTP request metrics.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        path = request.url.path
        status_code = 500
        failure = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            failure = repr(e)
            raise
        finally:
            elapsed = time.perf_counter() - started
            fields = {
                "trace_id": trace_id_context.get(),
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "client": request.client.host if request.client else None,
            }
            if failure:
                fields["error"] = failure

            if failure or status_code >= 500:
                logger.error(f"{request.method} {path} -> {status_code}", extra=fields)
            elif status_code >= 400:
                logger.warning(f"{request.method} {path} -> {status_code}", extra=fields)
            elif path in QUIET_PATHS:
                logger.debug(f"{request.method} {path} -> {status_code}", extra=fields)
            else:
                logger.info(f"{request.method} {path} -> {status_code}", extra=fields)

            record_http_request(
                path=path,
                method=request.method,
                status_code=status_code,
                duration_seconds=elapsed,
            )
