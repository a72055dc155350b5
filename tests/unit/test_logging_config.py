"""
Unit tests for structured logging.
"""

import json
import logging
import sys

import pytest

from duckit.common.logging_config import (
    PerformanceTracker,
    StructuredFormatter,
    correlation_scope,
    get_structured_logger,
)


def _record(msg="hello", **extra_fields):
    record = logging.LogRecord("duckit.test", logging.INFO, __file__, 1, msg, (), None)
    if extra_fields:
        record.extra_fields = extra_fields
    return record


def _format(record):
    return json.loads(StructuredFormatter().format(record))


class TestCorrelationScope:
    """Tests for the correlation id context."""

    def test_generated_when_missing(self):
        with correlation_scope() as correlation_id:
            assert correlation_id
            assert _format(_record())["correlation_id"] == correlation_id

    def test_explicit_value(self):
        with correlation_scope("abc") as correlation_id:
            assert correlation_id == "abc"

    def test_cleared_on_exit(self):
        with correlation_scope("abc"):
            pass

        assert "correlation_id" not in _format(_record())

    def test_nested_scope_restores_outer(self):
        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert _format(_record())["correlation_id"] == "inner"
            assert _format(_record())["correlation_id"] == "outer"

    def test_cleared_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with correlation_scope("abc"):
                raise RuntimeError("boom")

        assert "correlation_id" not in _format(_record())


class TestStructuredFormatter:
    """Tests for JSON log output."""

    def test_basic_fields(self):
        data = _format(_record())

        assert data["level"] == "INFO"
        assert data["logger"] == "duckit.test"
        assert data["message"] == "hello"
        assert data["timestamp"].endswith("Z")
        assert data["location"].endswith(":1")
        assert "correlation_id" not in data

    def test_includes_extra_fields(self):
        assert _format(_record(tier="temp"))["tier"] == "temp"

    def test_includes_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "duckit.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        assert "ValueError: bad" in _format(record)["exception"]


class TestFieldLogger:
    """Tests for keyword-field logging."""

    def test_kwargs_become_fields(self, caplog):
        logger = get_structured_logger("duckit.test.fields")

        with caplog.at_level(logging.INFO, logger="duckit.test.fields"):
            with correlation_scope("corr-2"):
                logger.info("Admission decision", allowed=True, size_mb=1.5)

        record = caplog.records[-1]
        assert record.getMessage() == "Admission decision"
        assert record.extra_fields == {
            "allowed": True, "size_mb": 1.5, "correlation_id": "corr-2"}

    def test_records_caller_location(self, caplog):
        logger = get_structured_logger("duckit.test.fields")

        with caplog.at_level(logging.INFO, logger="duckit.test.fields"):
            logger.warning("located")

        assert caplog.records[-1].funcName == "test_records_caller_location"

    def test_disabled_level_is_skipped(self, caplog):
        logger = get_structured_logger("duckit.test.quiet")

        with caplog.at_level(logging.WARNING, logger="duckit.test.quiet"):
            logger.debug("hidden")

        assert not [r for r in caplog.records if r.name == "duckit.test.quiet"]


class TestPerformanceTracker:
    """Tests for operation timing."""

    def test_logs_completion(self, caplog):
        logger = logging.getLogger("duckit.test.perf")

        with caplog.at_level(logging.DEBUG, logger="duckit.test.perf"):
            with PerformanceTracker("export", logger, tables=2) as tracker:
                pass

        assert tracker.duration_ms is not None
        completed = caplog.records[-1]
        assert completed.getMessage() == "export completed"
        assert completed.extra_fields["tables"] == 2
        assert "duration_ms" in completed.extra_fields

    def test_logs_failure(self, caplog):
        logger = logging.getLogger("duckit.test.perf")

        with caplog.at_level(logging.DEBUG, logger="duckit.test.perf"):
            with pytest.raises(RuntimeError):
                with PerformanceTracker("export", logger):
                    raise RuntimeError("boom")

        failed = caplog.records[-1]
        assert failed.levelno == logging.ERROR
        assert failed.getMessage() == "export failed"
        assert failed.extra_fields["error"] == "boom"
        assert failed.extra_fields["error_type"] == "RuntimeError"

    def test_carries_correlation_id(self, caplog):
        logger = logging.getLogger("duckit.test.perf")

        with caplog.at_level(logging.INFO, logger="duckit.test.perf"):
            with correlation_scope("corr-3"):
                with PerformanceTracker("publish", logger):
                    pass

        assert caplog.records[-1].extra_fields["correlation_id"] == "corr-3"
