"""
Redis Streams publisher.

Each validated reading becomes one entry in a Redis stream (the queue
named by QUEUE_NAME). Downstream consumers read the stream with consumer
groups. The stream is trimmed approximately to queue_max_length entries so
an absent consumer cannot exhaust broker memory.

Connection failures and timeouts are retried at a fixed interval through
resilience.retry; the ingestion service only sees the final outcome.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ingestion.models import SensorMessage
from messaging.publisher import MessagePublisher, PublishError
from resilience.retry import RetryConfig, retry_async
from telemetry.service import TelemetryService, start_external_service_span

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "SensorDataMessage"


class RedisStreamPublisher(MessagePublisher):
    """
    MessagePublisher that appends messages to a Redis stream with XADD.

    Attributes:
        redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        queue_name: Stream key messages are appended to
        max_length: Approximate MAXLEN applied on every XADD
        retry_config: Transport-level retry policy
        client: Redis async client instance (initialized via connect())
    """

    def __init__(
        self,
        redis_url: str,
        queue_name: str = "sensor-data-queue",
        max_length: int = 100_000,
        retry_attempts: int = 3,
        retry_interval: float = 5.0,
        telemetry: Optional[TelemetryService] = None,
        client: Optional[Any] = None,
    ):
        self.redis_url = redis_url
        self.queue_name = queue_name
        self.max_length = max_length
        self.retry_config = RetryConfig(
            max_attempts=retry_attempts,
            initial_delay=retry_interval,
            exponential_base=1.0,
            retryable_exceptions=(RedisConnectionError, RedisTimeoutError),
        )
        self.telemetry = telemetry
        self.client = client

    @classmethod
    def from_settings(cls, settings, telemetry: Optional[TelemetryService] = None) -> "RedisStreamPublisher":
        return cls(
            redis_url=settings.effective_redis_url,
            queue_name=settings.queue_name,
            max_length=settings.queue_max_length,
            retry_attempts=settings.publish_retry_attempts,
            retry_interval=settings.publish_retry_interval_seconds,
            telemetry=telemetry,
        )

    async def connect(self) -> None:
        """
        Create the async Redis client.

        The connection pool is lazy: an unreachable broker does not prevent
        startup, it shows up in the readiness probe and as publish failures.
        """
        if self.client is None:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
        logger.info(
            "Redis stream publisher ready",
            extra={"extra_data": {"queue": self.queue_name, "max_length": self.max_length}}
        )

    async def disconnect(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def _build_entry(self, message: SensorMessage) -> Dict[str, str]:
        return {
            "message_id": str(uuid.uuid4()),
            "message_type": MESSAGE_TYPE,
            "published_at": datetime.now(timezone.utc).isoformat(),
            "payload": message.to_json(),
        }

    async def publish(self, message: SensorMessage) -> None:
        """
        Append the message to the stream.

        Raises:
            PublishError: If connect() has not been called
            RetryExhaustedException: If every attempt failed with a connection
                error or timeout
            RedisError: For any other broker error (not retried)
        """
        if self.client is None:
            raise PublishError("Redis client not connected. Call connect() first.")

        entry = self._build_entry(message)
        with start_external_service_span(
            "redis",
            "xadd",
            {
                "messaging.system": "redis",
                "messaging.destination.name": self.queue_name,
                "messaging.message.id": entry["message_id"],
            },
            telemetry=self.telemetry,
        ):
            entry_id = await retry_async(
                self.client.xadd,
                self.queue_name,
                entry,
                maxlen=self.max_length,
                approximate=True,
                config=self.retry_config,
                operation_name=f"xadd:{self.queue_name}",
            )

        logger.debug(
            "Message appended to stream",
            extra={"extra_data": {
                "queue": self.queue_name,
                "entry_id": entry_id,
                "message_id": entry["message_id"],
                "plot_id": str(message.plot_id),
                "kind": message.kind.value,
            }}
        )

    async def health_check(self) -> bool:
        """Ping Redis; returns False instead of raising on any broker error."""
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.warning(
                "Redis health check failed",
                extra={"extra_data": {"error": str(e), "error_type": type(e).__name__}}
            )
            return False
