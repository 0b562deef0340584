"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

from taskauth.core.logger import JSONFormatter, configure_logging


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    configure_logging("DEBUG")
    try:
        assert logging.getLogger().level == logging.DEBUG
    finally:
        configure_logging("WARNING")


def test_json_formatter_copies_credential_fields() -> None:
    """Event metadata passed through ``extra=`` lands in the JSON payload."""

    record = logging.LogRecord(
        name="taskauth.services.credentials.ledger",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Refresh token reuse detected",
        args=(),
        exc_info=None,
    )
    record.event = "refresh_token.reuse_detected"
    record.user_id = "42"
    record.token_id = "abc"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "Refresh token reuse detected"
    assert payload["event"] == "refresh_token.reuse_detected"
    assert payload["user_id"] == "42"
    assert payload["token_id"] == "abc"
    assert "kid" not in payload
