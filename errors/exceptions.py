"""
Exceptions raised at the HTTP boundary.

Route handlers raise AppException (usually through one of the factories
below) and errors.handlers turns it into the JSON error body.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    A failure the API reports to the gateway.

    `errors` holds per-field entries ({field, error} plus `index` for batch
    items); `details` holds request-level context such as batch counts.
    The status code defaults from the error code.
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        errors: Optional[list[dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error_code": self.error_code.value, "message": self.message}
        for key in ("details", "errors"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body

    def __repr__(self) -> str:
        return f"AppException({self.error_code.value}, {self.message!r}, status_code={self.status_code})"


def validation_error(
    message: str,
    errors: Optional[list[dict[str, Any]]] = None,
    details: Optional[dict[str, Any]] = None,
) -> AppException:
    """Readings that parsed but broke a field rule; `errors` lists each violation."""
    return AppException(ErrorCode.VALIDATION_ERROR, message, details=details, errors=errors)


def invalid_request(message: str, details: Optional[dict[str, Any]] = None) -> AppException:
    return AppException(ErrorCode.INVALID_REQUEST, message, details=details)


def publish_failed(
    message: str = "An internal error occurred while processing the sensor data",
) -> AppException:
    """The message never includes broker detail; chain the cause with `raise ... from`."""
    return AppException(ErrorCode.PUBLISH_FAILED, message)
