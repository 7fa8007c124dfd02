"""Tests for redaction and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from mcmeet.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def captured() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_mcmeet_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_redacts_user_and_network_identifiers(captured) -> None:
    logger, stream = captured

    logger.info(
        "rate_limit.exceeded",
        extra={"user_id": "student-42", "client_ip": "203.0.113.7", "policy": "chat"},
    )

    output = stream.getvalue()
    assert "student-42" not in output
    assert "203.0.113.7" not in output
    assert "[REDACTED]" in output
    assert "chat" in output


def test_redacts_nested_headers(captured) -> None:
    logger, stream = captured

    logger.info(
        "request_headers",
        extra={"headers": {"Authorization": "Bearer abc.def", "X-User-Id": "u-1", "accept": "json"}},
    )

    output = json.loads(stream.getvalue())
    assert output["headers"]["Authorization"] == "[REDACTED]"
    assert output["headers"]["X-User-Id"] == "[REDACTED]"
    assert output["headers"]["accept"] == "json"


def test_safe_fields_pass_through(captured) -> None:
    logger, stream = captured

    logger.info(
        "rate_limit.allowed",
        extra={"key_hash": "0123abcd", "limit": 60, "remaining": 59},
    )

    output = json.loads(stream.getvalue())
    assert output["message"] == "rate_limit.allowed"
    assert output["level"] == "info"
    assert output["limit"] == 60
    assert output["remaining"] == 59
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context_is_attached(captured) -> None:
    logger, stream = captured

    set_request_id("req-123")
    try:
        logger.info("chat.message_received")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"
