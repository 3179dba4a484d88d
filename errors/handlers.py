"""
Exception handlers for the Sensor Data Ingestion API.

This module converts exceptions into structured JSON error responses with a
consistent format. Unexpected exceptions are logged with their stack trace
and answered with a generic message that never exposes internal details.
"""

import logging
import uuid
from http import HTTPStatus
from typing import Any, Optional, Sequence

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode
from errors.exceptions import AppException

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    `error` is the HTTP reason phrase ("Bad Request", "Unauthorized", ...);
    `errors` lists field-level problems for validation failures.
    """
    error: str
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    errors: Optional[list[dict[str, Any]]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID from the request state or generate a new one.

    The RequestIDMiddleware sets this value; a fresh UUID is returned when a
    response is produced outside of it.
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


def build_error_response(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
    details: Optional[dict[str, Any]] = None,
    errors: Optional[list[dict[str, Any]]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Render an ErrorResponse body for the given request."""
    error_response = ErrorResponse(
        error=HTTPStatus(status_code).phrase,
        error_code=error_code.value,
        message=message,
        details=details,
        errors=errors,
        request_id=get_request_id(request),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True),
        headers=headers,
    )


def request_validation_errors(raw_errors: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Flatten pydantic request errors into `{field, error}` entries.

    The location ("body", 2, "plotId", ...) becomes field "plotId" with
    index 2; union member tags after the field name are dropped.
    """
    flattened = []
    for raw in raw_errors:
        loc = [part for part in raw.get("loc", ()) if part != "body"]
        index = None
        # A json_invalid loc ends with the byte offset of the decode error
        if loc and isinstance(loc[0], int) and raw.get("type") != "json_invalid":
            index = loc.pop(0)
        entry: dict[str, Any] = {
            "field": next((part for part in loc if isinstance(part, str)), "body"),
            "error": raw.get("msg", "Invalid value"),
        }
        if index is not None:
            entry["index"] = index
        flattened.append(entry)
    return flattened


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """Handle known application exceptions and convert to structured response."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Application error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    return build_error_response(
        request,
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        errors=exc.errors,
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Report body-shape problems (malformed UUIDs, non-numeric values, missing
    fields) as 400 validation errors instead of FastAPI's default 422.
    """
    errors = request_validation_errors(exc.errors())
    logger.warning(
        "Request payload rejected",
        extra={"extra_data": {
            "path": request.url.path,
            "method": request.method,
            "error_count": len(errors),
        }}
    )
    return build_error_response(
        request,
        status_code=400,
        error_code=ErrorCode.VALIDATION_ERROR,
        message="Request payload is invalid",
        errors=errors,
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    The full stack trace is logged; the client only receives a generic message.
    """
    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        }},
        exc_info=exc,
    )

    return build_error_response(
        request,
        status_code=500,
        error_code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
    )


def register_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
