"""Tests for configuration, exceptions, error handlers and log context."""

import json
import logging
from unittest.mock import patch

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel, ValidationError

from app.core.config import Settings, SocSettings, SyncSettings
from app.core.error_handlers import register_exception_handlers
from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidInputError,
    JobNotFoundError,
    VitalisException,
)
from app.core.job_context import (
    SyncContextFilter,
    get_current_sync_context,
    sync_logging_context,
)
from app.core.logging import JSONFormatter
from app.core.middleware import RequestContextMiddleware


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()

        assert settings.sync.batch_size == 100
        assert settings.sync.max_concurrent == 5
        assert settings.sync.parallel is False
        assert settings.sync.max_run_seconds is None
        assert settings.soc.timeout == 120.0
        assert settings.soc.encoding == "latin-1"
        assert settings.soc.excerpt_length == 1000

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SYNC_BATCH_SIZE", "250")
        monkeypatch.setenv("SYNC_PARALLEL", "true")
        monkeypatch.setenv("SOC_URL", "https://soc.example.com/export/")

        assert SyncSettings().batch_size == 250
        assert SyncSettings().parallel is True
        assert SocSettings().url == "https://soc.example.com/export"

    def test_batch_size_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("SYNC_BATCH_SIZE", "0")
        with pytest.raises(ValidationError):
            SyncSettings()


class TestExceptions:
    """Test application exception payloads."""

    def test_invalid_input(self):
        exc = InvalidInputError("Bad type", field="type", value="payroll")
        assert exc.status_code == 400
        assert exc.error_code == "INVALID_INPUT"
        assert exc.details == {"field": "type", "value": "payroll"}

    def test_not_found(self):
        exc = JobNotFoundError(12)
        assert exc.status_code == 404
        assert exc.message == "SyncJob with id '12' not found"

    def test_conflict(self):
        exc = ConflictError("busy", active_job_ids=[3])
        assert exc.status_code == 409
        assert exc.details == {"active_job_ids": [3]}

    def test_default_error_code_is_class_name(self):
        assert VitalisException("boom").error_code == "VitalisException"


class Payload(BaseModel):
    count: int


@pytest.fixture
def error_client():
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("A company sync is already running", active_job_ids=[1])

    @app.get("/auth")
    async def auth():
        raise AuthenticationError()

    @app.post("/payload")
    async def payload(body: Payload):
        return body

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    return TestClient(app, raise_server_exceptions=False)


class TestErrorHandlers:
    """Test the JSON error envelope."""

    def test_application_error(self, error_client):
        response = error_client.get("/conflict", headers={"X-Request-ID": "r-1"})

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "error": {
                "message": "A company sync is already running",
                "error_code": "CONFLICT",
                "details": {"active_job_ids": [1]},
                "request_id": "r-1",
            },
        }

    def test_authentication_error_challenge(self, error_client):
        response = error_client.get("/auth")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert "details" not in response.json()["error"]

    def test_validation_error_is_invalid_input(self, error_client):
        response = error_client.post("/payload", json={"count": "many"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["error_code"] == "INVALID_INPUT"
        assert error["details"]["errors"][0]["field"] == "body -> count"

    def test_unknown_route(self, error_client):
        response = error_client.get("/missing")

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "NOT_FOUND"

    def test_unexpected_error_hides_internals(self, error_client):
        response = error_client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["error_code"] == "INTERNAL_SERVER_ERROR"
        assert "secret" not in error["message"]


@pytest.fixture
def access_client():
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/api/sync/{job_id}")
    async def get_job(job_id: str, request: Request):
        request.state.owner_id = "owner-1"
        return {"id": job_id}

    @app.post("/api/sync/start")
    async def start(request: Request):
        request.state.owner_id = "owner-1"
        request.state.sync_id = 42
        return {"job_id": 42}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return TestClient(app)


class TestRequestContextMiddleware:
    """Test request ids and access logging."""

    def test_access_line_names_caller_and_job(self, access_client):
        with patch("app.core.middleware.logger") as mock_logger:
            response = access_client.get(
                "/api/sync/7", headers={"X-Request-ID": "req-7"}
            )

        assert response.headers["X-Request-ID"] == "req-7"
        assert float(response.headers["X-Process-Time"]) >= 0
        level, message = mock_logger.log.call_args[0]
        fields = mock_logger.log.call_args[1]["extra"]
        assert level == logging.INFO
        assert message.startswith("GET /api/sync/7 200 caller=owner-1 sync_job=7")
        assert fields["request_id"] == "req-7"
        assert fields["caller"] == "owner-1"
        assert fields["sync_job_id"] == "7"

    def test_route_supplied_job_id(self, access_client):
        with patch("app.core.middleware.logger") as mock_logger:
            access_client.post("/api/sync/start")

        fields = mock_logger.log.call_args[1]["extra"]
        assert fields["sync_job_id"] == "42"

    def test_unusable_request_id_is_replaced(self, access_client):
        response = access_client.get(
            "/api/sync/7", headers={"X-Request-ID": "x" * 500}
        )

        request_id = response.headers["X-Request-ID"]
        assert request_id != "x" * 500
        assert len(request_id) == 32

    def test_health_checks_log_at_debug(self, access_client):
        with patch("app.core.middleware.logger") as mock_logger:
            access_client.get("/health")

        assert mock_logger.log.call_args[0][0] == logging.DEBUG
        assert "caller" not in mock_logger.log.call_args[1]["extra"]


def make_record(message: str = "Fetching records") -> logging.LogRecord:
    return logging.LogRecord(
        "app.services.sync", logging.INFO, __file__, 1, message, None, None
    )


class TestSyncLoggingContext:
    """Test sync job context on log records."""

    def test_context_is_scoped(self):
        assert get_current_sync_context() == {}

        with sync_logging_context(7, "employee", "owner-1", parent_id=3):
            context = get_current_sync_context()
            assert context["sync_id"] == 7
            assert context["parent_id"] == 3

        assert get_current_sync_context() == {}

    def test_filter_adds_context(self):
        record = make_record()

        with sync_logging_context(7, "employee", "owner-1"):
            assert SyncContextFilter().filter(record) is True

        assert record.sync_id == 7
        assert record.owner_id == "owner-1"
        assert record.sync_context == " [sync_type=employee, sync_id=7]"

    def test_filter_outside_a_job(self):
        record = make_record()
        SyncContextFilter().filter(record)
        assert record.sync_context == ""

    def test_json_formatter_includes_context(self):
        record = make_record("Processing batch 2 of 5")
        with sync_logging_context(9, "company", "owner-1"):
            SyncContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Processing batch 2 of 5"
        assert data["sync_id"] == 9
        assert data["sync_type"] == "company"
