"""
Error code catalog for the Sensor Data Ingestion API.

Every error response carries one of these codes so gateways can branch on
the failure category without parsing messages.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    - Validation errors (4xx): the reading or batch was rejected
    - Authentication errors (4xx): the API key was missing or wrong
    - Publishing errors (5xx): the message could not be handed to the queue
    - Internal errors (5xx): anything unexpected
    """

    # Validation errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """One or more readings failed field validation (HTTP 400)"""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Malformed request structure, e.g. an empty batch (HTTP 400)"""

    # Authentication errors (4xx)
    UNAUTHORIZED = "UNAUTHORIZED"
    """API key missing or invalid (HTTP 401)"""

    # Publishing errors (5xx)
    PUBLISH_FAILED = "PUBLISH_FAILED"
    """The message broker rejected or did not accept the message (HTTP 500)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.PUBLISH_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """Get the default HTTP status code for an error code."""
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
