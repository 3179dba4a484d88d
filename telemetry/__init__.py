"""
Telemetry module for structured logging and observability.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for logging, tracing and metric export setup
- MetricsSink and its OpenTelemetry implementation SensorMetrics
"""

from telemetry.metrics import MetricsSink, SensorMetrics
from telemetry.service import (
    JSONFormatter,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
    start_span,
)

__all__ = [
    "JSONFormatter",
    "TelemetryService",
    "MetricsSink",
    "SensorMetrics",
    "get_telemetry_service",
    "initialize_telemetry",
    "start_span",
]
