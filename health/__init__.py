"""
Health check module for the Sensor Data Ingestion API.

Liveness, basic health and a readiness probe of the message broker with
response time reporting.
"""

from health.service import (
    HealthCheckService,
    HealthStatus,
    DependencyHealth,
)

__all__ = [
    "HealthCheckService",
    "HealthStatus",
    "DependencyHealth",
]
