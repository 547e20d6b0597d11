"""Tests for global exception handlers.

Validates that limiter errors are mapped to consistent HTTP responses
without leaking internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from window_limiter.core.errors import (
    AppError,
    ConfigurationAppError,
    LimiterStoppedError,
    ValidationAppError,
)
from window_limiter.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(code="test_validation", message="Test validation error")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "test_validation"
        assert data["error"]["message"] == "Test validation error"
        assert "request_id" in data["error"]

    def test_configuration_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def endpoint():
            raise ConfigurationAppError(
                code="invalid_rate_limit_config",
                message="limit must be an integer >= 1",
                details={"field": "limit", "actual_value": 0},
            )

        response = client.get("/test-config")

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert details == {"field": "limit", "actual_value": 0}

    def test_limiter_stopped_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-stopped")
        async def endpoint():
            raise LimiterStoppedError(code="limiter_stopped", message="stopped")

        response = client.get("/test-stopped")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "limiter_stopped"
        assert "details" not in response.json()["error"]


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_hides_message(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("refresh thread state corrupted")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "corrupted" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()

    def test_unhandled_route_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def endpoint():
            raise KeyError("boom")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers


def test_app_error_str_is_message():
    error = LimiterStoppedError(code="limiter_stopped", message="Rate limiter has been stopped")

    assert str(error) == "Rate limiter has been stopped"
    assert isinstance(error, AppError)
    assert isinstance(ConfigurationAppError(code="c", message="m"), ValidationAppError)
