"""
Message publisher abstraction.

The ingestion service hands each validated reading to a MessagePublisher
and only cares whether the call returned or raised. Delivery, transport
retries and connection management belong to the implementation.
"""

from abc import ABC, abstractmethod

from ingestion.models import SensorMessage


class PublishError(Exception):
    """Raised by publishers when a message could not be handed to the broker."""


class MessagePublisher(ABC):
    """
    Abstract base class for downstream queue publishers.

    All methods are async. Cancelling the awaiting task cancels an in-flight
    publish; implementations must let CancelledError propagate.
    """

    @abstractmethod
    async def publish(self, message: SensorMessage) -> None:
        """
        Send one message to the downstream queue.

        Raises:
            Exception: Any failure to hand the message over. The caller
                treats every exception as a publish failure.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check whether the broker is reachable.

        Returns:
            True if the broker is reachable, False otherwise. Never raises.
        """

    async def connect(self) -> None:
        """Open broker connections. Called once at application startup."""

    async def disconnect(self) -> None:
        """Release broker connections. Called once at application shutdown."""
