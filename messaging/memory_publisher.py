"""
In-memory publisher for local development and tests.
"""

import logging
from typing import List

from ingestion.models import SensorMessage
from messaging.publisher import MessagePublisher

logger = logging.getLogger(__name__)


class InMemoryMessagePublisher(MessagePublisher):
    """
    Keeps published messages in a list instead of sending them anywhere.

    Not usable in production: startup validation rejects publisher_type
    "memory" there.
    """

    def __init__(self, queue_name: str = "sensor-data-queue"):
        self.queue_name = queue_name
        self.messages: List[SensorMessage] = []

    async def publish(self, message: SensorMessage) -> None:
        self.messages.append(message)
        logger.debug(
            "Message stored in memory queue",
            extra={"extra_data": {
                "queue": self.queue_name,
                "plot_id": str(message.plot_id),
                "kind": message.kind.value,
                "queued": len(self.messages),
            }}
        )

    async def health_check(self) -> bool:
        return True

    def clear(self) -> None:
        self.messages.clear()
