"""Tests for log redaction, request correlation and JSON output."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from ratelimit_api.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)
from ratelimit_api.services.rate_limiter_service import FixedWindowRateLimiter
from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore


@pytest.fixture
def log_stream():
    """Attach a JSON handler with the production filters to a test logger."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())

    logger = logging.getLogger("ratelimit_api")
    previous_level = logger.level
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    try:
        yield stream
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
        clear_request_id()


def _lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def test_sensitive_fields_are_redacted(log_stream):
    logging.getLogger("ratelimit_api.test").info(
        "store_event",
        extra={
            "client_id": "user123",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "headers": {"Authorization": "Bearer abc", "user-agent": "pytest"},
            "limit": 10,
        },
    )

    output = log_stream.getvalue()
    assert "user123" not in output
    assert "hunter2" not in output
    assert "Bearer abc" not in output
    assert "pytest" in output

    record = _lines(log_stream)[0]
    assert record["client_id"] == "[REDACTED]"
    assert record["limit"] == 10


def test_request_id_is_attached_from_context(log_stream):
    set_request_id("req-42")
    logging.getLogger("ratelimit_api.test").info("something")

    assert _lines(log_stream)[0]["request_id"] == "req-42"


def test_engine_logs_decisions_with_hashed_client_id(log_stream):
    limiter = FixedWindowRateLimiter(InMemoryCounterStore(), limit=1, window_seconds=60)

    limiter.allow("user123")
    limiter.allow("user123")

    allowed, exceeded = _lines(log_stream)
    assert allowed["message"] == "rate_limit.allowed"
    assert allowed["level"] == "info"
    assert allowed["remaining"] == 0
    assert exceeded["message"] == "rate_limit.exceeded"
    assert exceeded["level"] == "warning"
    assert exceeded["client_id_hash"] == allowed["client_id_hash"]
    assert "user123" not in log_stream.getvalue()
