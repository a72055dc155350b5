"""
Analytical engine abstraction.

Provides the capability interface used by ingestion, export and size
estimation, and its DuckDB implementation.
"""

from duckit.engine.adapter import (
    AnalyticalEngine,
    ColumnInfo,
    EngineError,
    TableInfo,
    quote_identifier,
    quote_literal,
)
from duckit.engine.duckdb_engine import DuckDBEngine

__all__ = [
    "AnalyticalEngine",
    "ColumnInfo",
    "EngineError",
    "TableInfo",
    "quote_identifier",
    "quote_literal",
    "DuckDBEngine",
]
