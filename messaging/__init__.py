"""
Publishing validated sensor readings to the downstream queue.
"""

from messaging.memory_publisher import InMemoryMessagePublisher
from messaging.publisher import MessagePublisher, PublishError
from messaging.redis_publisher import RedisStreamPublisher


def create_publisher(settings, telemetry=None) -> MessagePublisher:
    """Build the publisher selected by settings.publisher_type."""
    if settings.publisher_type == "memory":
        return InMemoryMessagePublisher(queue_name=settings.queue_name)
    return RedisStreamPublisher.from_settings(settings, telemetry=telemetry)


__all__ = [
    "MessagePublisher",
    "PublishError",
    "InMemoryMessagePublisher",
    "RedisStreamPublisher",
    "create_publisher",
]
