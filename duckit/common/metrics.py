"""
Prometheus metrics for monitoring and observability.

Provides counters, histograms, and decorators for tracking:
- Table ingestion
- Artifact export and size estimation
- Upload admission decisions
- Transfers to the remote storage service
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

tables_ingested_total = Counter(
    "tables_ingested_total",
    "Total number of delimited files loaded into the engine",
    ["status"],  # success/failure
    registry=REGISTRY,
)

exports_total = Counter(
    "exports_total",
    "Total number of artifacts exported",
    ["kind", "status"],  # parquet/bundle/estimate, success/failure
    registry=REGISTRY,
)

admission_decisions_total = Counter(
    "admission_decisions_total",
    "Upload admission decisions",
    ["outcome", "reason"],  # allow/deny, none/ARTIFACT_TOO_LARGE/...
    registry=REGISTRY,
)

transfers_total = Counter(
    "transfers_total",
    "Upload attempts against the remote storage service",
    ["tier", "status"],  # temp/persistent/permanent, complete/failed/cancelled
    registry=REGISTRY,
)

record_persist_failures_total = Counter(
    "record_persist_failures_total",
    "File records that could not be saved after a successful upload",
    registry=REGISTRY,
)

# ========== Histograms ==========

export_size_bytes = Histogram(
    "export_size_bytes",
    "Size of exported artifacts",
    ["kind"],
    buckets=(1e4, 1e5, 1e6, 1e7, 5e7, 1e8, 2.5e8),
    registry=REGISTRY,
)

export_duration_seconds = Histogram(
    "export_duration_seconds",
    "Time to export an artifact",
    ["kind"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

transfer_duration_seconds = Histogram(
    "transfer_duration_seconds",
    "Time from token request to completed upload",
    ["tier"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_export(kind: str):
    """
    Decorator to track export duration and outcome.

    Args:
        kind: Export kind (parquet/bundle/estimate)
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                export_duration_seconds.labels(kind=kind).observe(
                    time.time() - start_time)
                exports_total.labels(kind=kind, status=status).inc()

        return wrapper
    return decorator


def track_ingest(func: Callable):
    """Decorator counting successful and failed ingestions."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        status = "success"
        try:
            return func(*args, **kwargs)
        except Exception:
            status = "failure"
            raise
        finally:
            tables_ingested_total.labels(status=status).inc()

    return wrapper


def record_admission(outcome: str, reason: str = "none") -> None:
    """Count one admission decision."""
    admission_decisions_total.labels(outcome=outcome, reason=reason).inc()


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
