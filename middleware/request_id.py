"""
Request ID middleware for request correlation.

Every request gets an ID, taken from the incoming X-Request-ID header or
freshly generated. It is stored on request.state for the error handlers,
in a context variable for the JSON log formatter, and echoed back on the
response so gateway operators can correlate their logs with ours.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Longer incoming IDs are replaced rather than trusted
MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request) -> str:
    candidate = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if not candidate or len(candidate) > MAX_REQUEST_ID_LENGTH or not candidate.isprintable():
        return str(uuid.uuid4())
    return candidate


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to the request, the logging context and the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """Return the current request's ID, or an empty string outside a request."""
    return request_id_var.get()
