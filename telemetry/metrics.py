"""
Metrics for the sensor data ingestion pipeline.

MetricsSink is the narrow interface the ingestion service and the auth gate
depend on. SensorMetrics implements it on an OpenTelemetry Meter; the SDK
instruments are safe to use from concurrent tasks.
"""

from abc import ABC, abstractmethod
from typing import Optional

from opentelemetry import metrics
from opentelemetry.metrics import Meter

METER_NAME = "SensorDataIngestion.API"


class MetricsSink(ABC):
    """Counters and timings recorded while ingesting readings."""

    @abstractmethod
    def record_received(self, kind: str, plot_id: str) -> None:
        """Count a reading that reached the ingestion service."""

    @abstractmethod
    def record_published(self, kind: str) -> None:
        """Count a reading that was accepted by the publisher."""

    @abstractmethod
    def record_failed(self, kind: str, error_type: str) -> None:
        """Count a reading that failed, tagged "validation_error" or "processing_error"."""

    @abstractmethod
    def record_duration(self, duration_ms: float, kind: str, success: bool) -> None:
        """Record the time spent on a single reading in milliseconds."""

    @abstractmethod
    def record_auth_attempt(self, success: bool) -> None:
        """Count an authentication decision on a protected path."""

    @abstractmethod
    def increment_active_requests(self) -> None:
        ...

    @abstractmethod
    def decrement_active_requests(self) -> None:
        ...


class SensorMetrics(MetricsSink):
    """
    MetricsSink backed by OpenTelemetry instruments.

    Instrument names and attribute keys are part of the dashboards' contract:
    telemetry_type, plot_id, error_type and success.
    """

    def __init__(self, meter: Optional[Meter] = None):
        self._meter = meter or metrics.get_meter(METER_NAME, "1.0.0")

        self._received = self._meter.create_counter(
            "sensor_data_received_total",
            unit="{reading}",
            description="Total number of sensor readings received",
        )
        self._published = self._meter.create_counter(
            "sensor_data_published_total",
            unit="{reading}",
            description="Total number of sensor readings published to the queue",
        )
        self._failed = self._meter.create_counter(
            "sensor_data_failed_total",
            unit="{reading}",
            description="Total number of sensor readings that failed processing",
        )
        self._duration = self._meter.create_histogram(
            "sensor_data_processing_duration_ms",
            unit="ms",
            description="Time spent validating and publishing a sensor reading",
        )
        self._auth_attempts = self._meter.create_counter(
            "authentication_attempts_total",
            unit="{attempt}",
            description="Total number of authentication attempts on protected paths",
        )
        self._auth_failures = self._meter.create_counter(
            "authentication_failures_total",
            unit="{attempt}",
            description="Total number of rejected authentication attempts",
        )
        self._active_requests = self._meter.create_up_down_counter(
            "active_requests",
            unit="{request}",
            description="Number of ingestion requests currently being processed",
        )

    def record_received(self, kind: str, plot_id: str) -> None:
        self._received.add(1, {"telemetry_type": kind, "plot_id": plot_id})

    def record_published(self, kind: str) -> None:
        self._published.add(1, {"telemetry_type": kind})

    def record_failed(self, kind: str, error_type: str) -> None:
        self._failed.add(1, {"telemetry_type": kind, "error_type": error_type})

    def record_duration(self, duration_ms: float, kind: str, success: bool) -> None:
        self._duration.record(duration_ms, {"telemetry_type": kind, "success": success})

    def record_auth_attempt(self, success: bool) -> None:
        self._auth_attempts.add(1, {"success": success})
        if not success:
            self._auth_failures.add(1)

    def increment_active_requests(self) -> None:
        self._active_requests.add(1)

    def decrement_active_requests(self) -> None:
        self._active_requests.add(-1)
