"""Tests for sensitive data filtering and identifier hashing in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from authguard.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    identifier_log_fields,
    set_request_id,
)
from authguard.adapters.rate_limit.in_memory import InMemoryProgressiveRateLimiter


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_redacts_credentials(capture) -> None:
    logger, stream = capture

    logger.info(
        "refresh_event",
        extra={
            "access_token": "eyJ-access",
            "refresh_token": "rt-secret",
            "password": "hunter2",
            "x-api-key": "another-secret",
            "attempt": 2,
        },
    )

    output = stream.getvalue()
    assert "eyJ-access" not in output
    assert "rt-secret" not in output
    assert "hunter2" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert json.loads(output)["attempt"] == 2


def test_redacts_raw_identifiers(capture) -> None:
    logger, stream = capture

    logger.info(
        "login_event",
        extra={"email": "victim@example.com", "ip_address": "203.0.113.7", "identifier": "ip:203.0.113.7"},
    )

    output = stream.getvalue()
    assert "victim@example.com" not in output
    assert "203.0.113.7" not in output


def test_redacts_nested_dicts(capture) -> None:
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={"headers": {"authorization": "Bearer abc", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "Bearer abc" not in output
    assert "pytest" in output


def test_includes_request_id_from_context(capture) -> None:
    logger, stream = capture
    set_request_id("req-123")
    try:
        logger.info("with_request")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_identifier_fields_hash_without_leaking() -> None:
    fields = identifier_log_fields("email:victim@example.com")

    assert fields["identifier_type"] == "email"
    assert fields["identifier_hash"] == hash_identifier("email:victim@example.com")
    assert len(fields["identifier_hash"]) == 16
    assert "victim" not in json.dumps(fields)


def test_raw_identifier_type() -> None:
    assert identifier_log_fields("plain-key")["identifier_type"] == "raw"


def test_limiter_block_log_carries_hash_only(caplog: pytest.LogCaptureFixture) -> None:
    limiter = InMemoryProgressiveRateLimiter(max_attempts=1)

    with caplog.at_level(logging.WARNING, logger="authguard.adapters.rate_limit.in_memory"):
        limiter.record_attempt("email:victim@example.com", success=False)

    record = next(r for r in caplog.records if r.getMessage() == "rate_limit.blocked")
    assert record.identifier_hash == hash_identifier("email:victim@example.com")
    assert "victim@example.com" not in json.dumps(record.__dict__, default=str)
