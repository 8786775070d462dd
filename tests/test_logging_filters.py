"""Tests for structured logging and sensitive data filtering."""

from __future__ import annotations

import json
import logging
from io import StringIO

from crafting_api.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
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


def test_client_addresses_are_redacted():
    logger, stream = _capture("test_client_redaction")

    logger.info(
        "rate_limit.exceeded",
        extra={
            "client_host": "203.0.113.7",
            "x-forwarded-for": "198.51.100.2",
            "key_hash": "abc123",
        },
    )

    output = stream.getvalue()
    assert "203.0.113.7" not in output
    assert "198.51.100.2" not in output
    assert "[REDACTED]" in output
    assert "abc123" in output


def test_nested_sensitive_fields_are_redacted():
    logger, stream = _capture("test_nested_redaction")

    logger.info(
        "http.request",
        extra={"headers": {"cookie": "session=1", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "session=1" not in output
    assert "pytest" in output


def test_safe_fields_pass_through_as_json():
    logger, stream = _capture("test_safe_fields")

    logger.info("recipe.resolved", extra={"item_id": 7, "nodes": 5})

    record = json.loads(stream.getvalue())
    assert record["message"] == "recipe.resolved"
    assert record["level"] == "info"
    assert record["item_id"] == 7
    assert record["nodes"] == 5
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_is_attached_from_context():
    logger, stream = _capture("test_request_id")

    set_request_id("req-42")
    try:
        logger.info("cache.hit", extra={"cache_key": 1000})
    finally:
        clear_request_id()

    record = json.loads(stream.getvalue())
    assert record["request_id"] == "req-42"


def test_display_text_is_not_escaped():
    logger, stream = _capture("test_unicode")

    logger.info("item.seen", extra={"text": "🔥 Fire"})

    assert "🔥 Fire" in stream.getvalue()
