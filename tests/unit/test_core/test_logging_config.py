"""Tests for correlation ids and log formatters."""
import json
import logging
import sys

import pytest

from pattern_hunter.core.logging_config import (
    CorrelationIDFilter, HumanReadableFormatter, StructuredFormatter, logging_manager,
)


@pytest.fixture(autouse=True)
def reset_correlation_id():
    logging_manager.clear_correlation_id()
    yield
    logging_manager.clear_correlation_id()


def make_record(message="hello", exc_info=None):
    return logging.LogRecord("pattern_hunter.test", logging.INFO, __file__, 10, message, None, exc_info)


def test_filter_marks_records_outside_session():
    record = make_record()

    assert CorrelationIDFilter().filter(record)
    assert record.correlation_id == "no-session"


def test_filter_uses_current_correlation_id():
    logging_manager.set_correlation_id("session-1234")
    record = make_record()

    CorrelationIDFilter().filter(record)

    assert record.correlation_id == "session-1234"
    assert logging_manager.get_correlation_id() == "session-1234"


def test_generated_correlation_id():
    corr_id = logging_manager.set_correlation_id()

    assert corr_id
    assert logging_manager.get_correlation_id() == corr_id


def test_structured_formatter_emits_json():
    record = make_record("Worker 3 ready")
    record.correlation_id = "session-abcd"
    record.worker_id = 3

    entry = json.loads(StructuredFormatter().format(record))

    assert entry["message"] == "Worker 3 ready"
    assert entry["level"] == "INFO"
    assert entry["correlation_id"] == "session-abcd"
    assert entry["extra"]["worker_id"] == 3


def test_structured_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record("failed", exc_info=sys.exc_info())

    entry = json.loads(StructuredFormatter().format(record))

    assert entry["exception"]["type"] == "RuntimeError"
    assert entry["exception"]["message"] == "boom"


def test_human_readable_formatter_shows_correlation_id():
    record = make_record("Search started")
    CorrelationIDFilter().filter(record)

    line = HumanReadableFormatter().format(record)

    assert line.endswith(" - INFO - no-session - Search started")
