"""
Middleware components for the Sensor Data Ingestion API.

Request correlation lives here. The API key middleware is imported from
middleware.api_key directly, since it depends on the telemetry package
which itself reads request_id_var from this package.
"""

from middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    get_request_id,
    request_id_var,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestIDMiddleware",
    "get_request_id",
    "request_id_var",
]
