"""
Shared pytest fixtures and configuration for all tests.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from hypothesis import settings, Verbosity, Phase

from ingestion.models import SensorReading, TelemetryKind
from messaging.publisher import MessagePublisher
from telemetry.metrics import MetricsSink

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Async tests and pydantic validation vary in speed
    print_blob=True,
)

# CI profile: more thorough, reproducible
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples, no shrinking
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


@pytest.fixture
def mock_metrics() -> MagicMock:
    """MetricsSink double; every method is a MagicMock."""
    return MagicMock(spec=MetricsSink)


@pytest.fixture
def mock_publisher() -> MagicMock:
    """MessagePublisher double whose publish succeeds."""
    mock = MagicMock(spec=MessagePublisher)
    mock.publish = AsyncMock(return_value=None)
    mock.health_check = AsyncMock(return_value=True)
    mock.connect = AsyncMock(return_value=None)
    mock.disconnect = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_redis() -> MagicMock:
    """Mock async Redis client for the stream publisher."""
    mock = MagicMock()
    mock.xadd = AsyncMock(return_value="1717243200000-0")
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def make_reading() -> Callable[..., SensorReading]:
    """Factory for valid readings; keyword arguments override fields."""

    def _make(**overrides: Any) -> SensorReading:
        fields: dict[str, Any] = {
            "plot_id": uuid.uuid4(),
            "measured_at": datetime.now(timezone.utc) - timedelta(minutes=5),
            "kind": TelemetryKind.TEMPERATURE,
            "value": 25.5,
        }
        fields.update(overrides)
        return SensorReading(**fields)

    return _make


@pytest.fixture
def sample_reading_payload() -> dict:
    """Sample single-reading JSON body as a gateway sends it."""
    return {
        "plotId": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
        "measuredAt": (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat(),
        "kind": "Temperature",
        "value": 25.5,
    }
