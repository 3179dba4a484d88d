"""
Sensor Data Ingestion API.

Application factory: wires settings, telemetry, the publisher, the
ingestion service and the middleware stack. Run with
`uvicorn main:create_app --factory` or `python main.py`.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.sensor_data import SERVICE_NAME, SERVICE_VERSION, router as sensor_data_router
from auth.gate import ApiKeySettings, AuthGate
from config.settings import Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from ingestion.service import SensorDataIngestionService
from messaging import MessagePublisher, create_publisher
from middleware.api_key import ApiKeyAuthenticationMiddleware
from middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from telemetry.metrics import MetricsSink, SensorMetrics
from telemetry.service import TelemetryService, initialize_telemetry

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    publisher: Optional[MessagePublisher] = None,
    metrics: Optional[MetricsSink] = None,
    telemetry: Optional[TelemetryService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted
        publisher: Publisher override; built from settings.publisher_type when omitted
        metrics: Metrics sink override; OpenTelemetry instruments when omitted
        telemetry: Telemetry service override; initialized from settings when omitted

    Raises:
        ConfigurationError: If the settings are missing or unusable
    """
    settings = settings or get_settings()
    validate_startup(settings)

    telemetry = telemetry or initialize_telemetry(settings)
    metrics = metrics or SensorMetrics(telemetry.meter)
    publisher = publisher or create_publisher(settings, telemetry=telemetry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting {SERVICE_NAME}",
            extra={"extra_data": {
                "environment": settings.environment.value,
                "publisher": type(publisher).__name__,
                "queue": settings.queue_name,
            }}
        )
        await publisher.connect()
        try:
            yield
        finally:
            await publisher.disconnect()
            telemetry.shutdown()
            logger.info(f"{SERVICE_NAME} stopped")

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.publisher = publisher
    app.state.ingestion_service = SensorDataIngestionService(
        publisher=publisher,
        metrics=metrics,
        telemetry=telemetry,
        publish_timeout=settings.publish_timeout_seconds,
    )
    app.state.health_check_service = HealthCheckService(publisher=publisher, check_timeout=5.0)

    register_exception_handlers(app)

    # Starlette runs the last added middleware first:
    # RequestID -> CORS -> API key -> routes
    app.add_middleware(
        ApiKeyAuthenticationMiddleware,
        gate=AuthGate(ApiKeySettings.from_settings(settings), metrics),
        telemetry=telemetry,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Content-Type",
            settings.api_key_header_name,
            REQUEST_ID_HEADER,
        ],
        expose_headers=[REQUEST_ID_HEADER, "Location"],
        max_age=600,
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(sensor_data_router)
    _register_health_routes(app)

    return app


def _register_health_routes(app: FastAPI) -> None:
    @app.get("/")
    async def root():
        return {"message": f"{SERVICE_NAME} is running", "version": SERVICE_VERSION}

    @app.get("/health")
    async def health_basic(request: Request):
        """Returns 200 OK while the service is accepting requests."""
        result = await request.app.state.health_check_service.check_health()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }

    @app.get("/health/ready")
    async def health_ready(request: Request):
        """
        Readiness check: probes the message broker and returns 503 with the
        failure reasons when it is unreachable.
        """
        health_status = await request.app.state.health_check_service.check_readiness()
        response_data = {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            **health_status.to_dict(),
        }

        if not health_status.is_healthy:
            response_data["failure_reasons"] = [
                {"dependency": dep.name, "error": dep.error}
                for dep in health_status.dependencies
                if not dep.healthy
            ]
            return JSONResponse(status_code=503, content=response_data)

        return response_data

    @app.get("/health/live")
    async def health_live(request: Request):
        result = await request.app.state.health_check_service.check_liveness()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_level="info")
