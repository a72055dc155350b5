"""
DuckDB implementation of the analytical engine.

One in-memory database and one connection per engine instance, opened on
first use. Exported files are written to a private scratch directory that
plays the role of the engine's virtual file system:

- {workdir}/{filename}.parquet - table exports and size-estimation scratch
"""

import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, List, Optional, Sequence

import duckdb

from duckit.engine.adapter import (
    AnalyticalEngine,
    ColumnInfo,
    EngineError,
    TableInfo,
    quote_identifier,
    quote_literal,
)

logger = logging.getLogger(__name__)


class DuckDBEngine(AnalyticalEngine):
    """
    Session-scoped DuckDB engine.

    The connection and the scratch directory are created lazily by the
    first operation that needs them and torn down by close(). Calling any
    operation after close() opens a fresh, empty session.
    """

    def __init__(self, workdir: Optional[str] = None, database: str = ":memory:"):
        """
        Initialize the engine without opening a connection.

        Args:
            workdir: Parent directory for the scratch area (None = system temp)
            database: DuckDB database path (default in-memory)
        """
        self._parent_dir = workdir
        self._database = database
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._scratch: Optional[Path] = None
        self._lock = threading.Lock()

    # ==================== Session lifecycle ====================

    def connection(self) -> duckdb.DuckDBPyConnection:
        """Return the session connection, opening it on first call."""
        with self._lock:
            if self._conn is None:
                self._conn = duckdb.connect(database=self._database)
                logger.debug("Opened DuckDB connection")
            return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _scratch_dir(self) -> Path:
        with self._lock:
            if self._scratch is None:
                if self._parent_dir:
                    Path(self._parent_dir).mkdir(parents=True, exist_ok=True)
                self._scratch = Path(
                    tempfile.mkdtemp(prefix="duckit-", dir=self._parent_dir))
            return self._scratch

    def _virtual_path(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename:
            raise EngineError(f"Invalid virtual file name: {filename!r}")
        return self._scratch_dir() / name

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                finally:
                    self._conn = None
                logger.debug("Closed DuckDB connection")
            if self._scratch is not None:
                shutil.rmtree(self._scratch, ignore_errors=True)
                self._scratch = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ==================== Capabilities ====================

    def _execute(self, sql: str, params: Optional[Sequence[Any]] = None):
        try:
            if params is None:
                return self.connection().execute(sql)
            return self.connection().execute(sql, params)
        except duckdb.Error as e:
            raise EngineError(str(e)) from e

    def run_sql(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        cursor = self._execute(sql, params)
        if cursor.description is None:
            return []
        return cursor.fetchall()

    def load_delimited(self, path: str, table_name: str, delimiter: str) -> None:
        # sample_size=-1 makes type detection read every row
        self._execute(
            f"CREATE OR REPLACE TABLE {quote_identifier(table_name)} AS "
            f"SELECT * FROM read_csv({quote_literal(str(path))}, "
            f"auto_detect=true, sample_size=-1, delim={quote_literal(delimiter)})"
        )

    def export_table(self, table_name: str, filename: str) -> None:
        target = self._virtual_path(filename)
        self._execute(
            f"COPY {quote_identifier(table_name)} "
            f"TO {quote_literal(str(target))} (FORMAT PARQUET)"
        )

    def read_virtual_file(self, filename: str) -> bytes:
        target = self._virtual_path(filename)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise EngineError(f"Virtual file not found: {filename}") from e

    def remove_virtual_file(self, filename: str) -> None:
        if self._scratch is None:
            return
        self._virtual_path(filename).unlink(missing_ok=True)

    def list_tables(self) -> List[TableInfo]:
        rows = self.run_sql(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'main' AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
        tables = []
        for (name,) in rows:
            info = self.describe_table(name)
            if info is not None:
                tables.append(info)
        return tables

    def describe_table(self, table_name: str) -> Optional[TableInfo]:
        columns = self.run_sql(
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = 'main' AND table_name = ? "
            "ORDER BY ordinal_position",
            [table_name],
        )
        if not columns:
            exists = self.run_sql(
                "SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = 'main' AND table_name = ?",
                [table_name],
            )
            if not exists:
                return None

        count_rows = self.run_sql(
            f"SELECT COUNT(*) FROM {quote_identifier(table_name)}")
        return TableInfo(
            name=table_name,
            row_count=int(count_rows[0][0]),
            columns=tuple(ColumnInfo(name=c, type=t) for c, t in columns),
        )

    def sample_rows(self, table_name: str, limit: int = 10) -> List[dict]:
        cursor = self._execute(
            f"SELECT * FROM {quote_identifier(table_name)} LIMIT {int(limit)}")
        names = [d[0] for d in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def drop_table(self, table_name: str) -> None:
        self._execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")
