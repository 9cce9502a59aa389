"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authguard.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitedAppError,
    ValidationAppError,
)
from authguard.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="invalid_identifier", message="Identifier is malformed")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_identifier"
        assert data["error"]["message"] == "Identifier is malformed"
        assert "request_id" in data["error"]

    def test_authentication_error_returns_403(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def test_endpoint():
            raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")

        response = client.get("/test-auth")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "invalid_api_key"

    def test_rate_limited_error_returns_429_with_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-rate-limited")
        async def test_endpoint():
            raise RateLimitedAppError(
                code="too_many_login_attempts",
                message="Too many login attempts.",
                details={"retry_after": 299.2, "remaining_attempts": 0, "reset_at": 1700000300.5, "limit": 5},
            )

        response = client.get("/test-rate-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "300"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000301"
        assert response.json()["error"]["details"]["retry_after"] == 299.2

    def test_error_without_details_omits_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise AppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("limiter table corrupted")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"

    def test_general_exception_handler_never_leaks_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("secret internal state")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert "secret internal state" not in response_text
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text
        assert "request_id" in data["error"]


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
