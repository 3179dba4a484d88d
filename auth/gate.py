"""
API key authentication gate.

Decides whether a request may reach the ingestion routes. Denials are
ordinary outcomes, never exceptions; the middleware turns them into 401
responses. The secret and the public allow-list are read once from Settings
into an immutable ApiKeySettings.
"""

import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from telemetry.metrics import MetricsSink

logger = logging.getLogger(__name__)

# Number of leading key characters that may appear in logs
REDACTED_PREFIX_LENGTH = 4


class AuthDecision(str, Enum):
    ALLOWED = "allowed"
    DENIED_MISSING_KEY = "denied-missing-key"
    DENIED_INVALID_KEY = "denied-invalid-key"
    PUBLIC_BYPASS = "public-bypass"

    @property
    def permits(self) -> bool:
        return self in (AuthDecision.ALLOWED, AuthDecision.PUBLIC_BYPASS)


@dataclass(frozen=True)
class ApiKeySettings:
    """
    Immutable gate configuration.

    public_paths are lowercase, without trailing slash; each one matches the
    path itself and every sub-path. The root path is always public.
    """
    api_key: str
    header_name: str = "X-API-KEY"
    public_paths: Tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings) -> "ApiKeySettings":
        return cls(
            api_key=settings.api_key,
            header_name=settings.api_key_header_name,
            public_paths=tuple(settings.public_paths),
        )


def redact_key(key: str) -> str:
    """Keep at most the first few characters of a presented key, never all of it."""
    shown = min(REDACTED_PREFIX_LENGTH, max(len(key) - 1, 0))
    return f"{key[:shown]}***"


class AuthGate:
    """Evaluates the API key header of a request against ApiKeySettings."""

    def __init__(self, config: ApiKeySettings, metrics: MetricsSink):
        self.config = config
        self.metrics = metrics
        self._expected = config.api_key.encode("utf-8")

    @property
    def header_name(self) -> str:
        return self.config.header_name

    def is_public(self, path: str) -> bool:
        """Case-insensitive allow-list match on the path or any of its sub-paths."""
        normalised = path.lower().rstrip("/")
        if not normalised:
            return True
        return any(
            normalised == public or normalised.startswith(public + "/")
            for public in self.config.public_paths
        )

    def evaluate(
        self,
        header_value: Optional[str],
        path: str,
        client_address: str = "unknown",
    ) -> AuthDecision:
        """
        Decide on one request.

        Public paths bypass the check without recording a metric. Every other
        decision records an authentication attempt.
        """
        if self.is_public(path):
            return AuthDecision.PUBLIC_BYPASS

        if header_value is None:
            self.metrics.record_auth_attempt(False)
            logger.warning(
                "Request rejected: API key missing",
                extra={"extra_data": {
                    "path": path,
                    "client_ip": client_address,
                    "header": self.config.header_name,
                }}
            )
            return AuthDecision.DENIED_MISSING_KEY

        if not hmac.compare_digest(header_value.encode("utf-8"), self._expected):
            self.metrics.record_auth_attempt(False)
            logger.warning(
                "Request rejected: invalid API key",
                extra={"extra_data": {
                    "path": path,
                    "client_ip": client_address,
                    "api_key": redact_key(header_value),
                }}
            )
            return AuthDecision.DENIED_INVALID_KEY

        self.metrics.record_auth_attempt(True)
        logger.info(
            "Request authenticated",
            extra={"extra_data": {"path": path, "client_ip": client_address}}
        )
        return AuthDecision.ALLOWED
