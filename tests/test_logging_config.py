"""Tests for logging configuration and formatters."""

import json
import logging
from datetime import date

import pytest

from expiry_alerts.logging import ComponentLoggerAdapter, get_logger
from expiry_alerts.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from expiry_alerts.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def logger():
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


def _record(logger, message="Test message", **extra):
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_basic(logger):
    """Test JSONFormatter produces valid JSON with mandatory fields."""
    output = JSONFormatter().format(_record(logger))
    log_obj = json.loads(output)

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "test"
    assert log_obj["timestamp"].endswith("Z")


def test_json_formatter_with_extra_fields(logger):
    record = _record(logger, event="job.run.completed", sent=3, today=date(2025, 1, 8))

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "job.run.completed"
    assert log_obj["sent"] == 3
    assert log_obj["today"] == "2025-01-08"


def test_json_formatter_stringifies_unknown_types(logger):
    record = _record(logger, weird=object())

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["weird"].startswith("<object")


def test_contextual_filter_adds_static_fields(logger):
    record = _record(logger)

    assert ContextualFilter(environment="production").filter(record) is True
    assert record.service == "expiry-alerts"
    assert record.environment == "production"


def test_contextual_filter_adds_context_fields(logger):
    record = _record(logger)

    with log_context(run_id="run-1", tenant_id="org_1"):
        ContextualFilter().filter(record)

    assert record.run_id == "run-1"
    assert record.tenant_id == "org_1"


def test_explicit_extra_wins_over_context(logger):
    record = _record(logger, tenant_id="explicit")

    with log_context(tenant_id="from-context"):
        ContextualFilter().filter(record)

    assert record.tenant_id == "explicit"


def test_key_value_formatter_with_extras(logger):
    formatter = KeyValueFormatter("%(levelname)s %(message)s")
    record = _record(logger, event="email.send.success", subject="Two words", ok=True, code=None)

    output = formatter.format(record)

    assert output.startswith("INFO Test message")
    assert "event=email.send.success" in output
    assert 'subject="Two words"' in output
    assert "ok=true" in output
    assert "code=null" in output


def test_key_value_formatter_skips_static_labels(logger):
    formatter = KeyValueFormatter("%(message)s")
    record = _record(logger, service="expiry-alerts", environment="local")

    assert formatter.format(record) == "Test message"


def test_component_logger_adapter_merges_extra(caplog):
    adapter = get_logger("expiry_alerts.test", component="sender")
    assert isinstance(adapter, ComponentLoggerAdapter)

    with caplog.at_level(logging.INFO, logger="expiry_alerts.test"):
        adapter.info("hello", extra={"event": "test.event"})

    record = caplog.records[-1]
    assert record.component == "sender"
    assert record.event == "test.event"


def test_get_logger_without_component():
    assert isinstance(get_logger("plain"), logging.Logger)


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="LOUD")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="xml")


def test_configure_logging_json_format():
    configure_logging(level="DEBUG", format_type="json", environment="test")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JSONFormatter)
    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_configure_logging_key_value_format():
    configure_logging(level="INFO", format_type="key-value")

    root = logging.getLogger()
    assert isinstance(root.handlers[0].formatter, KeyValueFormatter)
