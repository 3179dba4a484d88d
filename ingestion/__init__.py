"""
Sensor telemetry ingestion.

This module provides the reading and message models, the business-rule
validator and the service that validates and publishes readings.
"""

from ingestion.models import (
    LEGACY_KIND_CODES,
    SensorMessage,
    SensorReading,
    TelemetryKind,
    parse_kind,
)
from ingestion.results import (
    BatchResult,
    IngestOutcome,
    IngestSuccess,
    PublishFailure,
    ValidationFailure,
)
from ingestion.service import SensorDataIngestionService
from ingestion.validator import FieldViolation, SensorReadingValidator

__all__ = [
    "TelemetryKind",
    "LEGACY_KIND_CODES",
    "parse_kind",
    "SensorReading",
    "SensorMessage",
    "FieldViolation",
    "SensorReadingValidator",
    "IngestOutcome",
    "IngestSuccess",
    "ValidationFailure",
    "PublishFailure",
    "BatchResult",
    "SensorDataIngestionService",
]
