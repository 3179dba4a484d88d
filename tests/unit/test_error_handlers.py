"""
Unit tests for error handlers.

Tests the error response model and exception handlers to ensure
they produce correctly structured responses.
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors.codes import ERROR_CODE_STATUS_MAP, ErrorCode, get_default_status_code
from errors.exceptions import (
    invalid_request,
    publish_failed,
    validation_error,
)
from errors.handlers import (
    ErrorResponse,
    get_request_id,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
    request_validation_errors,
)


def _mock_request(request_id: str = "req-123") -> MagicMock:
    request = MagicMock(spec=Request)
    request.state.request_id = request_id
    request.url.path = "/api/sensordata"
    request.method = "POST"
    return request


class TestErrorCodes:
    def test_every_code_has_a_status(self):
        assert set(ERROR_CODE_STATUS_MAP) == set(ErrorCode)

    @pytest.mark.parametrize("code, status", [
        (ErrorCode.VALIDATION_ERROR, 400),
        (ErrorCode.INVALID_REQUEST, 400),
        (ErrorCode.UNAUTHORIZED, 401),
        (ErrorCode.PUBLISH_FAILED, 500),
        (ErrorCode.INTERNAL_ERROR, 500),
    ])
    def test_default_status_codes(self, code, status):
        assert get_default_status_code(code) == status


class TestExceptionFactories:
    def test_validation_error_carries_field_errors(self):
        errors = [{"field": "plotId", "error": "plotId is required"}]
        exc = validation_error("Sensor reading failed validation", errors=errors)

        assert exc.status_code == 400
        assert exc.to_dict() == {
            "error_code": "VALIDATION_ERROR",
            "message": "Sensor reading failed validation",
            "errors": errors,
        }

    def test_publish_failed_has_generic_message(self):
        exc = publish_failed()
        assert exc.status_code == 500
        assert exc.error_code is ErrorCode.PUBLISH_FAILED
        assert "broker" not in exc.message.lower()

    def test_invalid_request_carries_details(self):
        exc = invalid_request("Empty batch", details={"count": 0})
        assert exc.status_code == 400
        assert exc.to_dict()["details"] == {"count": 0}

    def test_repr_includes_code(self):
        assert "PUBLISH_FAILED" in repr(publish_failed())


class TestErrorResponse:
    def test_model_dump_excludes_none(self):
        response = ErrorResponse(
            error="Internal Server Error",
            error_code="INTERNAL_ERROR",
            message="An error occurred",
            request_id="req-789",
        )

        assert response.model_dump(exclude_none=True) == {
            "error": "Internal Server Error",
            "error_code": "INTERNAL_ERROR",
            "message": "An error occurred",
            "request_id": "req-789",
        }


class TestGetRequestId:
    def test_from_state(self):
        assert get_request_id(_mock_request("existing-request-id")) == "existing-request-id"

    def test_generates_uuid_when_not_set(self):
        request = MagicMock(spec=Request)
        del request.state.request_id
        assert len(get_request_id(request)) == 36


class TestRequestValidationErrors:
    def test_body_field_errors(self):
        raw = [{"loc": ("body", "plotId"), "msg": "Input should be a valid UUID"}]
        assert request_validation_errors(raw) == [
            {"field": "plotId", "error": "Input should be a valid UUID"}
        ]

    def test_list_items_carry_their_index(self):
        raw = [{"loc": ("body", 2, "value"), "msg": "Input should be a valid number"}]
        assert request_validation_errors(raw) == [
            {"field": "value", "error": "Input should be a valid number", "index": 2}
        ]

    def test_whole_body_errors(self):
        raw = [{"loc": ("body",), "msg": "Field required"}]
        assert request_validation_errors(raw) == [{"field": "body", "error": "Field required"}]

    def test_json_decode_offset_is_not_an_index(self):
        raw = [{"type": "json_invalid", "loc": ("body", 11), "msg": "JSON decode error"}]
        assert request_validation_errors(raw) == [{"field": "body", "error": "JSON decode error"}]


class TestHandlers:
    @pytest.mark.asyncio
    async def test_handle_app_exception(self):
        exc = validation_error("Bad reading", errors=[{"field": "kind", "error": "Invalid telemetry type"}])

        response = await handle_app_exception(_mock_request(), exc)

        assert response.status_code == 400
        assert json.loads(response.body) == {
            "error": "Bad Request",
            "error_code": "VALIDATION_ERROR",
            "message": "Bad reading",
            "errors": [{"field": "kind", "error": "Invalid telemetry type"}],
            "request_id": "req-123",
        }

    @pytest.mark.asyncio
    async def test_handle_unexpected_exception_hides_details(self):
        response = await handle_unexpected_exception(
            _mock_request(), RuntimeError("redis password is hunter2")
        )

        body = json.loads(response.body)
        assert response.status_code == 500
        assert body["error_code"] == "INTERNAL_ERROR"
        assert "hunter2" not in response.body.decode()


class TestRegisteredHandlers:
    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        register_exception_handlers(app)

        class Payload(BaseModel):
            count: int

        @app.post("/items")
        async def items(payload: Payload):
            return {"count": payload.count}

        @app.get("/boom")
        async def boom():
            raise RuntimeError("internal detail")

        return TestClient(app, raise_server_exceptions=False)

    def test_request_validation_errors_are_400(self, client):
        response = client.post("/items", json={"count": "many"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["errors"][0]["field"] == "count"

    def test_unexpected_errors_are_500(self, client):
        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL_ERROR"
        assert "internal detail" not in response.text
