"""
Trace ID middleware - correlates log lines, error bodies and response headers
"""

import re
import uuid
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from zyra.infrastructure.logging_config import trace_id_context

TRACE_ID_HEADER = "X-Trace-ID"
# Upstream ids are echoed into logs and headers, so only plain tokens are accepted
_ACCEPTED_TRACE_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def _incoming_trace_id(request: Request) -> Optional[str]:
    for header in (TRACE_ID_HEADER, "X-Request-Id"):
        value = request.headers.get(header)
        if value and _ACCEPTED_TRACE_ID.fullmatch(value):
            return value
    return None


class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    Reuses a well-formed X-Trace-ID / X-Request-Id from the caller or creates
    one. The id is stored on request.state and in the logging context for the
    duration of the request, and returned in the X-Trace-ID response header.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = _incoming_trace_id(request) or generate_trace_id()

        request.state.trace_id = trace_id
        token = trace_id_context.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_context.reset(token)

        response.headers[TRACE_ID_HEADER] = trace_id
        return response


def get_trace_id(request: Request) -> Optional[str]:
    return getattr(request.state, "trace_id", None)
