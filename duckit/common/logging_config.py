"""
Structured JSON logging for the conversion and publish pipeline.

Every log line written while a publish attempt runs carries that attempt's
correlation id, so token request, transfer and record lines can be joined.
Keyword fields passed to a FieldLogger, or set by PerformanceTracker, are
emitted as top-level JSON keys.
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Loggers that report every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _with_context(fields: Dict[str, Any]) -> Dict[str, Any]:
    correlation_id = _correlation_id.get()
    if correlation_id:
        return {**fields, "correlation_id": correlation_id}
    return dict(fields)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Tag every log line inside the block with one correlation id.

    A fresh uuid4 is used when none is given. The previous id is restored on
    exit, so scopes nest.
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        entry.update(_with_context(getattr(record, "extra_fields", {})))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class FieldLogger:
    """
    Thin wrapper whose keyword arguments become structured fields.

        logger.info("Admission decision", allowed=False, reason="STORAGE_FULL")
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def log(self, level: int, msg: str, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, msg, extra={"extra_fields": _with_context(fields)},
                            stacklevel=3)

    def debug(self, msg: str, **fields):
        self.log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields):
        self.log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields):
        self.log(logging.WARNING, msg, **fields)

    def error(self, msg: str, **fields):
        self.log(logging.ERROR, msg, **fields)


def get_structured_logger(name: str) -> FieldLogger:
    return FieldLogger(logging.getLogger(name))


class PerformanceTracker:
    """
    Time a pipeline step and log its outcome.

    Usage:
        with PerformanceTracker("export_bundle", logger, tables=3):
            ...

    Success is logged at `log_level` with `duration_ms`; an exception is logged
    at ERROR with its type and message and then re-raised.
    """

    def __init__(self, operation: str, logger: logging.Logger,
                 log_level: int = logging.INFO, **fields):
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.fields = fields
        self.duration_ms: Optional[float] = None
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        fields = _with_context({
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            **self.fields,
        })
        if exc_type is None:
            self.logger.log(self.log_level, f"{self.operation} completed",
                            extra={"extra_fields": fields})
        else:
            fields.update(error=str(exc_val), error_type=exc_type.__name__)
            self.logger.error(f"{self.operation} failed", extra={"extra_fields": fields})


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """Replace root handlers with one stderr handler at `log_level`."""
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter() if json_format
        else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
