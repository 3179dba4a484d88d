"""
Sensor data endpoints.

Gateways POST single readings or batches; both answer 202 Accepted once the
readings are on the queue. Validation failures are reported as 400 with one
{field, error} entry per violation; publish failures as a generic 500.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from config.settings import Settings
from errors.exceptions import invalid_request, publish_failed, validation_error
from ingestion.models import SensorReading
from ingestion.results import PublishFailure, ValidationFailure
from ingestion.service import SensorDataIngestionService
from telemetry.metrics import MetricsSink

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/sensordata/status"
SERVICE_NAME = "Sensor Data Ingestion API"
SERVICE_VERSION = "1.0.0"

router = APIRouter(prefix="/api/sensordata", tags=["sensor-data"])


def get_ingestion_service(request: Request) -> SensorDataIngestionService:
    return request.app.state.ingestion_service


def get_metrics(request: Request) -> MetricsSink:
    return request.app.state.metrics


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _violation_errors(failure: ValidationFailure, index: Optional[int] = None) -> List[dict[str, Any]]:
    errors = []
    for violation in failure.violations:
        entry = violation.to_dict()
        if index is not None:
            entry["index"] = index
        errors.append(entry)
    return errors


def _accepted(content: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=202, content=content, headers={"Location": STATUS_PATH})


@router.post("", status_code=202)
async def ingest_sensor_data(
    reading: SensorReading,
    service: SensorDataIngestionService = Depends(get_ingestion_service),
    metrics: MetricsSink = Depends(get_metrics),
):
    """
    Accept one sensor reading and publish it to the queue.

    Returns:
        202 with the plot id and kind echoed back

    Raises:
        AppException: VALIDATION_ERROR (400) or PUBLISH_FAILED (500)
    """
    metrics.increment_active_requests()
    try:
        outcome = await service.ingest(reading)
    finally:
        metrics.decrement_active_requests()

    if isinstance(outcome, ValidationFailure):
        raise validation_error(
            message="Sensor reading failed validation",
            errors=_violation_errors(outcome),
        )
    if isinstance(outcome, PublishFailure):
        raise publish_failed() from outcome.error

    return _accepted({
        "message": "Sensor data received and queued for processing",
        "plotId": str(outcome.message.plot_id),
        "kind": outcome.message.kind.value,
    })


@router.post("/batch", status_code=202)
async def ingest_sensor_data_batch(
    readings: Optional[List[SensorReading]] = Body(default=None),
    service: SensorDataIngestionService = Depends(get_ingestion_service),
    metrics: MetricsSink = Depends(get_metrics),
    settings: Settings = Depends(get_app_settings),
):
    """
    Accept a list of sensor readings and publish each one.

    Every reading is attempted. When any reading fails, the lowest-index
    failure decides the response: a validation failure returns 400 listing
    the violations of every invalid reading with its index, a publish
    failure returns 500. Readings that did publish are not rolled back.
    """
    if not readings:
        raise invalid_request("The batch must contain at least one sensor reading")
    if len(readings) > settings.max_batch_size:
        raise invalid_request(
            f"The batch cannot contain more than {settings.max_batch_size} sensor readings",
            details={"count": len(readings), "max_batch_size": settings.max_batch_size},
        )

    metrics.increment_active_requests()
    try:
        result = await service.ingest_batch(readings)
    finally:
        metrics.decrement_active_requests()

    first_failure = result.first_failure
    if first_failure is not None:
        _, outcome = first_failure
        if isinstance(outcome, PublishFailure):
            raise publish_failed() from outcome.error

        errors: List[dict[str, Any]] = []
        for index, failure in result.failures:
            if isinstance(failure, ValidationFailure):
                errors.extend(_violation_errors(failure, index))
        raise validation_error(
            message="One or more sensor readings failed validation",
            errors=errors,
            details={"count": result.count, "published": result.published_count},
        )

    return _accepted({
        "message": f"{result.count} sensor readings received and queued for processing",
        "count": result.count,
    })


@router.get("/status")
async def sensor_data_status(settings: Settings = Depends(get_app_settings)):
    """Public status blob describing the service and its telemetry setup."""
    exporter = "otlp" if settings.otel_endpoint else "none"
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.environment.value,
        "authentication": {
            "type": "api_key",
            "header": settings.api_key_header_name,
        },
        "telemetry": {
            "traces": settings.otel_endpoint is not None,
            "metrics": settings.otel_endpoint is not None,
            "logs": "json",
            "exporter": exporter,
        },
    }
