"""
Transport-level retry for calls to the message broker.

Publishing is retried here, below the ingestion service: the service sees
either a successful publish or the exception raised once every attempt has
failed. The default policy is a fixed interval (exponential_base=1.0), which
matches how gateways expect the broker to behave during a short outage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, the first one included.
        initial_delay: Delay before the second attempt in seconds.
        exponential_base: Growth factor between delays; 1.0 gives a fixed interval.
        max_delay: Optional cap on a single delay in seconds.
        retryable_exceptions: Exception types that trigger another attempt.
            Anything else propagates immediately.
    """
    max_attempts: int = 3
    initial_delay: float = 5.0
    exponential_base: float = 1.0
    max_delay: Optional[float] = None
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (ConnectionError, TimeoutError)
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")


class RetryExhaustedException(Exception):
    """
    Raised when every attempt failed with a retryable exception.

    The last exception is kept as `last_exception` and chained as __cause__.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Exception,
        operation_name: Optional[str] = None
    ):
        self.attempts = attempts
        self.last_exception = last_exception
        self.operation_name = operation_name
        super().__init__(message)


def calculate_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float,
    max_delay: Optional[float] = None
) -> float:
    """
    Delay after the given 0-indexed failed attempt:
    initial_delay * exponential_base ** attempt, capped by max_delay.
    """
    delay = initial_delay * (exponential_base ** attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying on the configured exceptions.

    Raises:
        RetryExhaustedException: When all attempts failed with a retryable exception
    """
    cfg = config or RetryConfig()
    name = operation_name or getattr(func, "__name__", "operation")
    last_attempt = cfg.max_attempts - 1

    for attempt in range(cfg.max_attempts):
        try:
            return await func(*args, **kwargs)
        except cfg.retryable_exceptions as e:
            failure = {"operation": name, "error_type": type(e).__name__, "error_message": str(e)}
            if attempt == last_attempt:
                logger.error(
                    f"Giving up on '{name}' after {cfg.max_attempts} attempts",
                    extra={"extra_data": {**failure, "attempts": cfg.max_attempts}}
                )
                raise RetryExhaustedException(
                    f"Operation '{name}' failed after {cfg.max_attempts} attempts",
                    attempts=cfg.max_attempts,
                    last_exception=e,
                    operation_name=name
                ) from e

            delay = calculate_delay(attempt, cfg.initial_delay, cfg.exponential_base, cfg.max_delay)
            logger.warning(
                f"'{name}' attempt {attempt + 1}/{cfg.max_attempts} failed, retrying in {delay:.2f}s",
                extra={"extra_data": {**failure, "attempt": attempt + 1, "delay_seconds": delay}}
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable: max_attempts is at least 1")
