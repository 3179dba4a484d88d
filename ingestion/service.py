"""
Sensor data ingestion service.

This module provides SensorDataIngestionService, which validates each
reading, maps it to a SensorMessage and hands it to the MessagePublisher,
recording metrics and spans along the way.

Outcomes are returned as values (IngestSuccess, ValidationFailure,
PublishFailure); the HTTP layer decides how each one is reported. Retries
are not attempted here: they belong to the publisher's transport.
"""

import asyncio
import logging
import time
from typing import Optional, Sequence

from ingestion.models import SensorMessage, SensorReading
from ingestion.results import (
    BatchResult,
    IngestOutcome,
    IngestSuccess,
    PublishFailure,
    ValidationFailure,
)
from ingestion.validator import SensorReadingValidator
from messaging.publisher import MessagePublisher
from telemetry.metrics import MetricsSink
from telemetry.service import TelemetryService, get_telemetry_service, start_span

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "validation_error"
PROCESSING_ERROR = "processing_error"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class SensorDataIngestionService:
    """
    Validates and publishes sensor readings.

    Attributes:
        publisher: Destination for validated readings
        metrics: Sink for counters and durations
        validator: Business-rule validator
        telemetry: Telemetry service for spans (uses global if not provided)
        publish_timeout: Optional bound in seconds on a single publish
    """

    def __init__(
        self,
        publisher: MessagePublisher,
        metrics: MetricsSink,
        validator: Optional[SensorReadingValidator] = None,
        telemetry: Optional[TelemetryService] = None,
        publish_timeout: Optional[float] = None,
    ):
        self.publisher = publisher
        self.metrics = metrics
        self.validator = validator or SensorReadingValidator()
        self.telemetry = telemetry or get_telemetry_service()
        self.publish_timeout = publish_timeout

    async def ingest(self, reading: SensorReading) -> IngestOutcome:
        """
        Validate, map and publish a single reading.

        The received metric is recorded before validation. Invalid readings
        never reach the publisher. Any exception raised by the publisher
        (a timeout included) is returned as PublishFailure with the
        exception unchanged.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; the
                attempt is recorded as a processing error first.
        """
        started = time.perf_counter()
        kind = reading.kind_label
        plot_id = reading.plot_label

        self.metrics.record_received(kind, plot_id)

        with start_span(
            "sensor.data.ingestion",
            {"plot_id": plot_id, "telemetry_type": kind},
            telemetry=self.telemetry,
        ) as span:
            with start_span("sensor.data.validation", telemetry=self.telemetry) as validation_span:
                violations = self.validator.validate(reading)
                validation_span.set_attribute("validation.success", not violations)

            if violations:
                duration_ms = _elapsed_ms(started)
                self.metrics.record_failed(kind, VALIDATION_ERROR)
                self.metrics.record_duration(duration_ms, kind, False)
                span.set_attribute("ingestion.outcome", VALIDATION_ERROR)
                logger.warning(
                    "Sensor reading rejected by validation",
                    extra={"extra_data": {
                        "plot_id": plot_id,
                        "telemetry_type": kind,
                        "violations": [v.to_dict() for v in violations],
                        "duration_ms": duration_ms,
                    }}
                )
                return ValidationFailure(reading=reading, violations=violations)

            message = SensorMessage.from_reading(reading)

            try:
                with start_span(
                    "sensor.data.publishing",
                    {"plot_id": plot_id, "telemetry_type": kind},
                    telemetry=self.telemetry,
                ):
                    await self._publish(message)
            except asyncio.CancelledError:
                duration_ms = _elapsed_ms(started)
                self.metrics.record_failed(kind, PROCESSING_ERROR)
                self.metrics.record_duration(duration_ms, kind, False)
                logger.warning(
                    "Sensor reading publish cancelled",
                    extra={"extra_data": {
                        "plot_id": plot_id,
                        "telemetry_type": kind,
                        "duration_ms": duration_ms,
                    }}
                )
                raise
            except Exception as e:
                duration_ms = _elapsed_ms(started)
                self.metrics.record_failed(kind, PROCESSING_ERROR)
                self.metrics.record_duration(duration_ms, kind, False)
                span.set_attribute("ingestion.outcome", PROCESSING_ERROR)
                logger.error(
                    f"Failed to publish sensor reading for plot {plot_id}",
                    extra={"extra_data": {
                        "plot_id": plot_id,
                        "telemetry_type": kind,
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "duration_ms": duration_ms,
                    }},
                    exc_info=e,
                )
                return PublishFailure(reading=reading, error=e)

            duration_ms = _elapsed_ms(started)
            self.metrics.record_published(kind)
            self.metrics.record_duration(duration_ms, kind, True)
            span.set_attribute("ingestion.outcome", "published")
            logger.info(
                f"Sensor reading published for plot {plot_id}",
                extra={"extra_data": {
                    "plot_id": plot_id,
                    "telemetry_type": kind,
                    "value": message.value,
                    "duration_ms": duration_ms,
                }}
            )
            return IngestSuccess(message=message)

    async def _publish(self, message: SensorMessage) -> None:
        if self.publish_timeout is None:
            await self.publisher.publish(message)
        else:
            await asyncio.wait_for(self.publisher.publish(message), timeout=self.publish_timeout)

    async def ingest_batch(self, readings: Sequence[SensorReading]) -> BatchResult:
        """
        Ingest every reading concurrently and join the outcomes.

        All readings are attempted even when some fail. Outcomes keep
        submission order. An empty sequence is a no-op success.
        """
        if not readings:
            return BatchResult(count=0)

        with start_span(
            "sensor.data.batch.ingestion",
            {"batch.size": len(readings)},
            telemetry=self.telemetry,
        ) as span:
            outcomes = await asyncio.gather(*(self.ingest(reading) for reading in readings))
            result = BatchResult(count=len(readings), outcomes=tuple(outcomes))

            failed = len(result.failures)
            span.set_attribute("batch.failed", failed)
            log = logger.warning if failed else logger.info
            log(
                f"Batch processing complete: {result.published_count} published, {failed} failed",
                extra={"extra_data": {
                    "total": result.count,
                    "published": result.published_count,
                    "failed": failed,
                }}
            )
            return result
