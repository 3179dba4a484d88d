"""
API key authentication middleware.

Runs the AuthGate on every request and answers denials with a 401
ErrorResponse before the router is reached.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from auth.gate import AuthDecision, AuthGate
from errors.codes import ErrorCode
from errors.handlers import build_error_response
from telemetry.service import TelemetryService, start_span


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address, preferring proxy forwarding headers
    over the direct peer address.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First entry is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client is not None:
        return request.client.host
    return "unknown"


class ApiKeyAuthenticationMiddleware(BaseHTTPMiddleware):
    """Reject requests to protected paths that lack the correct API key."""

    def __init__(
        self,
        app: ASGIApp,
        gate: AuthGate,
        telemetry: Optional[TelemetryService] = None,
    ):
        super().__init__(app)
        self.gate = gate
        self.telemetry = telemetry

    def _denial_message(self, decision: AuthDecision) -> str:
        if decision is AuthDecision.DENIED_MISSING_KEY:
            return f"API key is required. Provide it in the '{self.gate.header_name}' header"
        return "Invalid API key"

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        path = request.url.path
        if self.gate.is_public(path):
            return await call_next(request)

        with start_span(
            "authentication",
            {"http.route": path, "auth.header": self.gate.header_name},
            telemetry=self.telemetry,
        ) as span:
            decision = self.gate.evaluate(
                request.headers.get(self.gate.header_name),
                path,
                get_client_ip(request),
            )
            span.set_attribute("auth.decision", decision.value)

        if not decision.permits:
            return build_error_response(
                request,
                status_code=401,
                error_code=ErrorCode.UNAUTHORIZED,
                message=self._denial_message(decision),
            )
        return await call_next(request)
