"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
import logging
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    CorruptDataAppError,
    ExpiredAppError,
    NotFoundAppError,
    RateLimitedAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from app.core.exception_handlers import setup_exception_handlers, status_code_for


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


@pytest.mark.parametrize(
    "error_cls, expected_status, expected_retryable",
    [
        (ValidationAppError, 400, False),
        (NotFoundAppError, 404, False),
        (ExpiredAppError, 410, False),
        (RateLimitedAppError, 429, True),
        (CorruptDataAppError, 500, False),
        (StoreUnavailableAppError, 503, True),
    ],
)
def test_status_and_retryable_per_error_class(error_cls, expected_status, expected_retryable):
    exc = error_cls(code="x", message="x")

    assert status_code_for(exc) == expected_status
    assert exc.retryable is expected_retryable


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns HTTP 400."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_identifier",
                message="Identifier must be 8 characters"
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_identifier"
        assert data["error"]["message"] == "Identifier must be 8 characters"
        assert data["error"]["retryable"] is False
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_validation_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify details are passed through when provided."""
        @app_with_handlers.get("/test-validation-details")
        async def test_endpoint():
            raise ValidationAppError(
                code="narrative_too_long",
                message="Narrative exceeds maximum length",
                details={"max_value": 20000, "actual_value": 25000},
            )

        response = client.get("/test-validation-details")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["details"] == {"max_value": 20000, "actual_value": 25000}
        assert "X-RateLimit-Limit" not in response.headers

    def test_expired_error_returns_410(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-expired")
        async def test_endpoint():
            raise ExpiredAppError(code="note_expired", message="Note has expired")

        response = client.get("/test-expired")

        assert response.status_code == 410
        assert response.json()["error"]["code"] == "note_expired"

    def test_rate_limit_details_become_headers(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify rate limit hints are mirrored as X-RateLimit-* headers."""
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise RateLimitedAppError(
                code="rate_limited",
                message="Too many requests",
                details={
                    "limit": 10,
                    "remaining": 0,
                    "reset_at": 1_700_000_060,
                    "retry_after": 42,
                },
            )

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.json()["error"]["retryable"] is True
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000060"
        assert response.headers["Retry-After"] == "42"

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Storage is temporarily unavailable"
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        data = response.json()
        assert data["error"]["code"] == "store_unavailable"
        assert data["error"]["retryable"] is True

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise NotFoundAppError(code="note_not_found", message="No note found")

        response = client.get("/test-format")
        data = response.json()

        # Required fields always present
        assert response.status_code == 404
        assert set(data["error"]) >= {"code", "message", "retryable", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        """Verify fallback exception handler is registered."""
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from app.core.exception_handlers import general_exception_handler

        request = MagicMock()
        request.scope = {}
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis connection pool exhausted")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        data = json.loads(response_body.decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert data["error"]["retryable"] is True
        # Original error message should NOT be in response
        assert "redis connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        from app.core.exception_handlers import general_exception_handler

        request = MagicMock()
        request.scope = {}
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        response_text = response_body.decode()
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


    def test_unhandled_exception_logs_route_template_not_identifier(
        self, app_with_handlers: FastAPI, caplog: pytest.LogCaptureFixture
    ):
        """The concrete path carries the note identifier; only the template is logged."""
        @app_with_handlers.get("/v1/notes/{identifier}")
        async def test_endpoint(identifier: str):
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, f"bad bytes for {identifier}")

        caplog.set_level(logging.ERROR, logger="app.core.exception_handlers")
        response = TestClient(app_with_handlers, raise_server_exceptions=False).get(
            "/v1/notes/A3X9-K2M7"
        )

        assert response.status_code == 500
        records = [r for r in caplog.records if r.getMessage() == "unhandled_exception"]
        assert len(records) == 1
        assert records[0].route == "/v1/notes/{identifier}"
        assert not hasattr(records[0], "request_path")
        assert "A3X9" not in json.dumps(vars(records[0]), default=str)


class TestRequestValidationHandler:
    """Malformed requests use the same error envelope as domain errors."""

    @pytest.fixture
    def notes_client(self, app_with_handlers: FastAPI) -> TestClient:
        from app.schemas.notes import CreateNoteRequest

        @app_with_handlers.post("/notes")
        async def create(payload: CreateNoteRequest):
            return {"ok": True}

        return TestClient(app_with_handlers)

    @pytest.mark.parametrize(
        "body",
        [
            {"identifier": "A3X9K2M7"},
            {"narrative": 123, "identifier": "A3X9K2M7"},
            {"narrative": ["x"]},
        ],
    )
    def test_invalid_body_returns_400_envelope(self, notes_client: TestClient, body):
        response = notes_client.post("/notes", json=body)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_request"
        assert error["retryable"] is False
        assert "request_id" in error
        assert error["details"]["context"]["fields"] == ["body.narrative"]

    def test_non_json_body_returns_400_envelope(self, notes_client: TestClient):
        response = notes_client.post(
            "/notes", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_request"

    def test_submitted_values_are_not_echoed(self, notes_client: TestClient):
        response = notes_client.post("/notes", json={"narrative": {"secret": "vertigo"}})

        assert response.status_code == 400
        assert "vertigo" not in response.text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        """Verify setup_exception_handlers properly registers handlers."""
        assert AppError in app_with_handlers.exception_handlers
        assert RequestValidationError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        """Verify calling setup_exception_handlers multiple times is safe."""
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
