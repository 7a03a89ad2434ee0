"""Tests for structured logging helpers."""

import json
import logging

from wildwatch.shared.infrastructure.logging import REDACTED, CustomJsonFormatter, log_latency


def make_record(**extra):
    record = logging.LogRecord("wildwatch.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def format_record(record, environment="test"):
    formatter = CustomJsonFormatter("%(name)s %(levelname)s %(message)s", environment=environment)
    return json.loads(formatter.format(record))


def test_formatter_adds_context_fields():
    payload = format_record(make_record(correlation_id="abc-123"))

    assert payload["message"] == "hello"
    assert payload["correlation_id"] == "abc-123"
    assert payload["environment"] == "test"
    assert "timestamp" in payload


def test_formatter_redacts_credentials():
    payload = format_record(make_record(api_key="sk-live", access_token="eyJhbGci", db_password="hunter2"))

    assert payload["api_key"] == REDACTED
    assert payload["access_token"] == REDACTED
    assert payload["db_password"] == REDACTED


def test_formatter_keeps_token_counts():
    payload = format_record(make_record(prompt_tokens="128", completion_tokens=12))

    assert payload["prompt_tokens"] == "128"
    assert payload["completion_tokens"] == 12


def test_log_latency_records_operation(caplog):
    logger = logging.getLogger("wildwatch.test.latency")

    with caplog.at_level(logging.INFO, logger="wildwatch.test.latency"):
        with log_latency(logger, "candidate_refresh", limit=30):
            pass

    record = caplog.records[-1]
    assert record.getMessage() == "candidate_refresh completed"
    assert record.operation == "candidate_refresh"
    assert record.limit == 30
    assert record.latency_ms >= 0
