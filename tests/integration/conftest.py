"""
Integration test configuration and fixtures.

Builds the full application around an in-memory publisher so requests travel
through the real middleware stack, routes and ingestion service.
"""
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from main import create_app
from messaging.memory_publisher import InMemoryMessagePublisher
from telemetry.metrics import MetricsSink
from telemetry.service import TelemetryService

TEST_API_KEY = "test-api-key-0123456789"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(api_key=TEST_API_KEY, publisher_type="memory", max_batch_size=5)


@pytest.fixture
def memory_publisher(test_settings) -> InMemoryMessagePublisher:
    return InMemoryMessagePublisher(queue_name=test_settings.queue_name)


@pytest.fixture
def app_metrics() -> MagicMock:
    return MagicMock(spec=MetricsSink)


@pytest.fixture
def app_telemetry(test_settings) -> TelemetryService:
    return TelemetryService(test_settings, configure_logging=False)


@pytest.fixture
def app(test_settings, memory_publisher, app_metrics, app_telemetry):
    return create_app(
        settings=test_settings,
        publisher=memory_publisher,
        metrics=app_metrics,
        telemetry=app_telemetry,
    )


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Unauthenticated client; runs the application lifespan."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(test_settings) -> dict:
    return {test_settings.api_key_header_name: TEST_API_KEY}
