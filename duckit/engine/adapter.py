"""
Abstract base class for the in-process analytical engine.

Defines the capability interface the pipeline depends on: load delimited
text into a named table, run SQL, export a table to a columnar file and
expose that file's bytes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple


class EngineError(Exception):
    """Exception raised when the analytical engine rejects an operation."""
    pass


@dataclass(frozen=True)
class ColumnInfo:
    """A column name with the type the engine inferred for it."""
    name: str
    type: str


@dataclass(frozen=True)
class TableInfo:
    """Metadata for one table held by the engine."""
    name: str
    row_count: int
    columns: Tuple[ColumnInfo, ...] = field(default_factory=tuple)


def quote_identifier(name: str) -> str:
    """Quote a SQL identifier, escaping embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a SQL string literal, escaping embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


class AnalyticalEngine(ABC):
    """
    Abstract base class for analytical engines.

    Implementations own a single connection that is opened lazily on first
    use and released by close(). Exported files live in an engine-private
    scratch area ("virtual files") until removed.
    """

    @abstractmethod
    def load_delimited(self, path: str, table_name: str, delimiter: str) -> None:
        """
        Create or replace a table from a delimited text file.

        Column types are inferred by scanning the whole file.

        Args:
            path: Path of the delimited file
            table_name: Target table name (replaced if it already exists)
            delimiter: Single-character field delimiter

        Raises:
            EngineError: If the file cannot be parsed
        """
        pass

    @abstractmethod
    def run_sql(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        """
        Execute SQL and return all result rows.

        Raises:
            EngineError: If the statement fails
        """
        pass

    @abstractmethod
    def export_table(self, table_name: str, filename: str) -> None:
        """
        Export a table to a Parquet virtual file.

        Args:
            table_name: Table to export
            filename: Virtual file name (no directories)

        Raises:
            EngineError: If the export fails
        """
        pass

    @abstractmethod
    def read_virtual_file(self, filename: str) -> bytes:
        """
        Return the bytes of a virtual file.

        Raises:
            EngineError: If the file does not exist
        """
        pass

    @abstractmethod
    def remove_virtual_file(self, filename: str) -> None:
        """Remove a virtual file if present."""
        pass

    @abstractmethod
    def list_tables(self) -> List[TableInfo]:
        """Return every base table ordered by name."""
        pass

    @abstractmethod
    def describe_table(self, table_name: str) -> Optional[TableInfo]:
        """Return metadata for one table, or None if it does not exist."""
        pass

    @abstractmethod
    def sample_rows(self, table_name: str, limit: int = 10) -> List[dict]:
        """Return up to `limit` rows as dictionaries."""
        pass

    @abstractmethod
    def drop_table(self, table_name: str) -> None:
        """Drop a table if it exists."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection and scratch files. Safe to call repeatedly."""
        pass
