"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO
from logging.handlers import RotatingFileHandler

import pytest

from app.core.config import LogSettings
from app.core.logging import JsonFormatter, SensitiveDataFilter, _build_handler, hash_for_log


@pytest.fixture
def capture():
    """Attach a redacting JSON handler to a fresh logger; yield (logger, stream)."""

    def _make(name: str):
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        logger.handlers.clear()
        logger.propagate = False

        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.addFilter(SensitiveDataFilter())
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        return logger, stream

    return _make


def test_sensitive_filter_redacts_secrets(capture):
    """Ensure SensitiveDataFilter redacts credential fields."""

    logger, stream = capture("test_redaction")

    logger.info(
        "test_event",
        extra={
            "authorization": "Bearer secret-123",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "secret-123" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_note_content_and_client_address(capture):
    """Ensure narratives, identifiers and client addresses never reach logs."""

    logger, stream = capture("test_note_redaction")

    logger.info(
        "note_event",
        extra={
            "narrative": "Patient reports room-spinning vertigo",
            "identifier": "A3X9K2M7",
            "client_id": "203.0.113.7",
            "char_count": 37,
        },
    )

    output = stream.getvalue()

    assert "vertigo" not in output
    assert "A3X9K2M7" not in output
    assert "203.0.113.7" not in output
    assert "[REDACTED]" in output
    assert "char_count" in output

    payload = json.loads(output)
    assert payload["identifier"] == hash_for_log("A3X9K2M7")
    assert payload["client_id"] == hash_for_log("203.0.113.7")


def test_sensitive_filter_allows_safe_fields(capture):
    """Verify safe fields pass through unmodified."""

    logger, stream = capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "route": "/v1/notes/{identifier}",
            "status": 200,
            "duration_ms": 150.5,
        },
    )

    output = stream.getvalue()

    assert "req-123" in output
    assert "/v1/notes/{identifier}" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts(capture):
    """Ensure nested sensitive fields are redacted."""

    logger, stream = capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-forwarded-for": "198.51.100.1, 10.0.0.1",
                "authorization": "Bearer secret-key",
                "user-agent": "pytest",
            },
            "safe_data": {
                "count": 5,
                "type": "test",
            },
        },
    )

    output = stream.getvalue()

    assert "198.51.100.1" not in output
    assert "secret-key" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output
    assert "test" in output


def test_hash_for_log_is_stable_and_opaque():
    digest = hash_for_log("203.0.113.7")

    assert digest == hash_for_log("203.0.113.7")
    assert digest != hash_for_log("203.0.113.8")
    assert len(digest) == 16
    int(digest, 16)


def test_formatter_alone_hashes_once(capture):
    """Filter plus formatter must not hash an already hashed field again."""

    logger, stream = capture("test_single_hash")

    logger.warning("blocked", extra={"client_id": "203.0.113.7"})

    assert json.loads(stream.getvalue())["client_id"] == hash_for_log("203.0.113.7")

    formatter_only = JsonFormatter()
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", (), None)
    record.client_id = "203.0.113.7"
    assert json.loads(formatter_only.format(record))["client_id"] == hash_for_log("203.0.113.7")


def test_file_output_rotates(tmp_path):
    handler = _build_handler(
        LogSettings(output="file", file_path=str(tmp_path / "logs" / "app.log"), max_bytes=1024, backup_count=2)
    )
    try:
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 1024
        assert handler.backupCount == 2
        assert (tmp_path / "logs").is_dir()
    finally:
        handler.close()


def test_file_output_without_rotation(tmp_path):
    handler = _build_handler(LogSettings(output="file", file_path=str(tmp_path / "app.log"), max_bytes=0))
    try:
        assert type(handler) is logging.FileHandler
    finally:
        handler.close()


def test_stdout_output_by_default():
    assert isinstance(_build_handler(LogSettings(output="stdout")), logging.StreamHandler)
