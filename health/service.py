"""
Health check service for the Sensor Data Ingestion API.

Liveness and basic health only prove the process answers. Readiness also
probes the message broker, with a timeout, and reports its response time so
load balancers stop routing readings to an instance that cannot publish.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from messaging.publisher import MessagePublisher

logger = logging.getLogger(__name__)

MESSAGE_BROKER = "message_broker"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "message_broker")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """Aggregate readiness: "healthy" or "unhealthy" plus each dependency."""
    status: str
    timestamp: str
    dependencies: list[DependencyHealth] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Checks the health of the service and its message broker.

    Attributes:
        publisher: The publisher whose broker connectivity is probed
        check_timeout: Timeout in seconds for the broker probe (default: 5.0)
    """

    def __init__(self, publisher: MessagePublisher, check_timeout: float = 5.0):
        self.publisher = publisher
        self.check_timeout = check_timeout

    async def check_readiness(self) -> HealthStatus:
        """
        Probe every dependency and return the aggregate status.

        The service is ready only when the broker is reachable.
        """
        dependencies = [await self._check_message_broker()]
        status = "healthy" if all(dep.healthy for dep in dependencies) else "unhealthy"
        return HealthStatus(status=status, timestamp=_utc_timestamp(), dependencies=dependencies)

    async def check_liveness(self) -> dict[str, Any]:
        """Process is running; no dependencies are checked."""
        return {"status": "alive", "timestamp": _utc_timestamp()}

    async def check_health(self) -> dict[str, Any]:
        return {"status": "ok", "timestamp": _utc_timestamp()}

    async def _check_message_broker(self) -> DependencyHealth:
        start_time = time.perf_counter()

        try:
            reachable = await asyncio.wait_for(
                self.publisher.health_check(),
                timeout=self.check_timeout
            )
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Message broker health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(
                name=MESSAGE_BROKER,
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Message broker health check failed: {e}"
            logger.error(error_msg, extra={"extra_data": {"error_type": type(e).__name__}})
            return DependencyHealth(
                name=MESSAGE_BROKER,
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if not reachable:
            logger.warning(f"Message broker unreachable after {elapsed_ms:.2f}ms")
            return DependencyHealth(
                name=MESSAGE_BROKER,
                healthy=False,
                response_time_ms=elapsed_ms,
                error="Message broker is not reachable"
            )

        logger.debug(f"Message broker health check passed in {elapsed_ms:.2f}ms")
        return DependencyHealth(name=MESSAGE_BROKER, healthy=True, response_time_ms=elapsed_ms)
