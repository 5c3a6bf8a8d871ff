"""
Trace ID utilities for request tracking
"""

import uuid
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from paychain.infrastructure.logging_config import trace_id_context

TRACE_HEADERS = ("X-Trace-ID", "X-Request-Id", "X-Correlation-Id")


def generate_trace_id() -> str:
    return str(uuid.uuid4())


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Binds a trace id to the request, the log context and the response headers"""

    async def dispatch(self, request: Request, call_next):
        trace_id = next(
            (request.headers[h] for h in TRACE_HEADERS if request.headers.get(h)),
            None,
        ) or generate_trace_id()

        request.state.trace_id = trace_id
        token = trace_id_context.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_context.reset(token)

        response.headers["X-Trace-ID"] = trace_id
        return response


def get_trace_id(request: Request) -> Optional[str]:
    """Trace id from request state, falling back to the log context"""
    return getattr(request.state, "trace_id", None) or trace_id_context.get()
