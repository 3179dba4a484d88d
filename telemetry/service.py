"""
Telemetry service for structured logging and observability.

This module provides structured JSON logging with request correlation and
the OpenTelemetry wiring for traces and metrics. When an OTLP endpoint is
configured, spans and metric points are exported to it; otherwise the
OpenTelemetry API stays in its no-op mode and only logs are produced.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from middleware.request_id import request_id_var

SERVICE_VERSION_VALUE = "1.0.0"
DEFAULT_SERVICE_NAME = "sensor-data-ingestion"
METRIC_EXPORT_INTERVAL_MS = 15_000


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Each entry contains timestamp (ISO 8601, UTC), level, message, logger and
    request_id, plus module/function/line. Fields passed through
    `extra={"extra_data": {...}}` are merged into the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data.update(extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


class TelemetryService:
    """
    Centralized telemetry service for logging, tracing and metrics.

    Sets up:
    - Structured JSON logging on the root logger
    - An OpenTelemetry tracer provider exporting over OTLP/gRPC
    - An OpenTelemetry meter provider exporting over OTLP/gRPC

    The tracer and meter are always usable: without an endpoint they come
    from the API's global (no-op) providers.
    """

    def __init__(self, settings: Optional[Any] = None, configure_logging: bool = True):
        """
        Initialize the telemetry service.

        Args:
            settings: Application settings containing log_level, otel_endpoint,
                     and otel_service_name configuration
            configure_logging: Install the JSON handler on the root logger
        """
        self.settings = settings
        self.service_name = getattr(settings, "otel_service_name", None) or DEFAULT_SERVICE_NAME
        self._logger = logging.getLogger("telemetry")
        if configure_logging:
            self._setup_logging()

        self._tracer_provider: Optional[TracerProvider] = None
        self._meter_provider: Optional[MeterProvider] = None
        self._setup_exporters()

        self.tracer = trace.get_tracer(self.service_name, SERVICE_VERSION_VALUE)
        self.meter = metrics.get_meter(self.service_name, SERVICE_VERSION_VALUE)

    def _setup_logging(self) -> None:
        """Replace root handlers with a stdout handler using JSONFormatter."""
        log_level_str = getattr(self.settings, "log_level", None) or "INFO"
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        stdout_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(stdout_handler)

        self._logger.info("Telemetry service initialized", extra={
            "extra_data": {"log_level": log_level_str}
        })

    def _setup_exporters(self) -> None:
        """
        Configure OTLP trace and metric export when an endpoint is set.

        Exporter failures are logged and leave the service on the no-op
        providers; telemetry must never prevent the API from starting.
        """
        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("OpenTelemetry endpoint not configured, export disabled")
            return

        resource = Resource(attributes={
            SERVICE_NAME: self.service_name,
            SERVICE_VERSION: SERVICE_VERSION_VALUE,
        })

        try:
            tracer_provider = TracerProvider(resource=resource)
            tracer_provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint))
            )
            trace.set_tracer_provider(tracer_provider)
            self._tracer_provider = tracer_provider

            metric_reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=otel_endpoint),
                export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
            )
            meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
            metrics.set_meter_provider(meter_provider)
            self._meter_provider = meter_provider

            self._logger.info("OpenTelemetry export configured", extra={
                "extra_data": {
                    "otel_endpoint": otel_endpoint,
                    "service_name": self.service_name,
                }
            })
        except Exception as e:
            self._logger.error(
                "Failed to configure OpenTelemetry export",
                extra={"extra_data": {"error": str(e)}},
                exc_info=True,
            )

    def shutdown(self) -> None:
        """Flush and stop the exporters configured by this service."""
        if self._tracer_provider is not None:
            self._tracer_provider.shutdown()
        if self._meter_provider is not None:
            self._meter_provider.shutdown()

    def create_span(self, name: str, attributes: Optional[Dict[str, Any]] = None):
        """
        Start an OpenTelemetry span as the current span.

        Args:
            name: Name of the span
            attributes: Optional attributes set on the span at start

        Returns:
            A context manager yielding the span
        """
        return self.tracer.start_as_current_span(name, attributes=attributes)

    def create_external_service_span(
        self,
        service_name: str,
        operation: str,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """
        Create a client span for a call to an external service such as the
        message broker, with standardized naming and attributes.
        """
        span_attributes: Dict[str, Any] = {
            "peer.service": service_name,
            "operation.name": operation,
        }
        if attributes:
            span_attributes.update(attributes)

        return self.tracer.start_as_current_span(
            f"{service_name}.{operation}",
            kind=trace.SpanKind.CLIENT,
            attributes=span_attributes,
        )


class _NoOpSpanContextManager:
    """
    Stand-in span used when no telemetry service has been initialized, so
    callers can use spans without checking whether tracing is enabled.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: Any, description: Optional[str] = None) -> None:
        pass

    def add_event(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """Get the global telemetry service instance, or None if not initialized."""
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """Initialize the global telemetry service."""
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service


def start_span(
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    telemetry: Optional[TelemetryService] = None,
):
    """
    Start a span on the given telemetry service, falling back to the global
    one, or a no-op span when neither exists.
    """
    telemetry = telemetry or _telemetry_service
    if telemetry is None:
        return _NoOpSpanContextManager()
    return telemetry.create_span(name, attributes)


def start_external_service_span(
    service_name: str,
    operation: str,
    attributes: Optional[Dict[str, Any]] = None,
    telemetry: Optional[TelemetryService] = None,
):
    """Client-span counterpart of start_span for calls to external services."""
    telemetry = telemetry or _telemetry_service
    if telemetry is None:
        return _NoOpSpanContextManager()
    return telemetry.create_external_service_span(service_name, operation, attributes)
