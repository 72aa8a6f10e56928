"""
Structured logging - message format for record, index and query operations.
"""

import logging

import pytest

from simstore.core.query_engine import QueryEngine
from simstore.samples import SAMPLE_QUERY
from util.logging import StructuredLogger, describe_vector, logger


@pytest.fixture
def captured(caplog):
    caplog.set_level(logging.INFO, logger="simstore")
    return caplog


def test_log_operation_format(captured):
    logger.log_operation("store.load", "success", {"records": 5})
    assert "Operation: store.load, Status: success, Details: {'records': 5}" in captured.text


def test_failed_operations_log_at_error_level(captured):
    logger.log_record_operation("put", "cat:1", {"error": "boom"}, status="failed")
    record = [r for r in captured.records if "record.put" in r.getMessage()][-1]
    assert record.levelno == logging.ERROR


def test_put_is_logged_without_vector_contents(captured, store):
    store.put("cat:1", "Whiskers", [0.1, 0.8, 0.3, 0.6])
    assert "Operation: record.put, Status: success" in captured.text
    assert "'key': 'cat:1'" in captured.text
    assert "0.8" not in captured.text


def test_query_is_logged(captured, cat_store):
    QueryEngine(cat_store).find_nearest(SAMPLE_QUERY, k=2)
    assert "Operation: query.find_nearest, Status: success" in captured.text
    assert "'returned': 2" in captured.text


def test_handler_not_duplicated():
    first = StructuredLogger("simstore.test_dup")
    second = StructuredLogger("simstore.test_dup")
    assert first.logger is second.logger
    assert len(second.logger.handlers) == 1


def test_describe_vector():
    assert describe_vector([0.1, 0.2, 0.3]) == {"dimension": 3}
    assert describe_vector(None) == {"dimension": None}
