"""
Schema-inferring ingestion of delimited text files.

Loads one file into one named engine table, choosing the delimiter and
letting the engine infer column types from the whole file.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

from duckit.common.metrics import track_ingest
from duckit.config.settings import get_settings
from duckit.engine.adapter import AnalyticalEngine, EngineError, TableInfo
from duckit.ingest.delimiter import DELIMITED_EXTENSIONS, infer_delimiter

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.(csv|tsv|txt|pipe|psv)$", re.IGNORECASE)
_INVALID_CHARS_RE = re.compile(r"[^a-zA-Z0-9_]")


class IngestError(Exception):
    """Raised when a file cannot be loaded as a delimited table."""
    pass


def derive_table_name(filename: str) -> str:
    """
    Derive a table name from a source filename.

    Removes a delimited-text extension and replaces every character outside
    [A-Za-z0-9_] with an underscore.

    Example:
        "sales 2024.csv" -> "sales_2024"
    """
    stem = _EXTENSION_RE.sub("", Path(filename).name)
    return _INVALID_CHARS_RE.sub("_", stem)


def is_delimited_filename(filename: str) -> bool:
    return filename.lower().endswith(DELIMITED_EXTENSIONS)


class SchemaInferringIngestor:
    """
    Loads delimited files into the analytical engine.

    Re-ingesting under an existing table name replaces that table.
    """

    def __init__(self, engine: AnalyticalEngine, sample_bytes: Optional[int] = None):
        """
        Initialize ingestor.

        Args:
            engine: Engine that receives the tables
            sample_bytes: Leading bytes read for delimiter detection
                (defaults to settings.delimiter_sample_bytes)
        """
        self.engine = engine
        self.sample_bytes = sample_bytes or get_settings().delimiter_sample_bytes

    @track_ingest
    def ingest(self, path: Union[str, Path], table_name: str) -> TableInfo:
        """
        Load one delimited file into a named table.

        Args:
            path: Delimited text file
            table_name: Target table (replaced if present)

        Returns:
            Metadata of the created table

        Raises:
            IngestError: If the file is missing, cannot be parsed, or yields
                a table without columns
        """
        path = Path(path)
        if not path.is_file():
            raise IngestError(f"File not found: {path}")
        if not table_name:
            raise IngestError("Table name must not be empty")

        try:
            delimiter = infer_delimiter(path, self.sample_bytes)
        except OSError as e:
            raise IngestError(f"Cannot read {path.name}: {e}") from e

        logger.debug(f"Loading {path.name} into {table_name} (delimiter {delimiter!r})")

        try:
            self.engine.load_delimited(str(path), table_name, delimiter)
            info = self.engine.describe_table(table_name)
        except EngineError as e:
            raise IngestError(f"Failed to parse {path.name}: {e}") from e

        if info is None or not info.columns:
            self.engine.drop_table(table_name)
            raise IngestError(f"No columns could be inferred from {path.name}")

        logger.info(
            f"Ingested {path.name} as {table_name}: "
            f"{info.row_count} rows, {len(info.columns)} columns"
        )
        return info

    def ingest_many(self, paths: Iterable[Union[str, Path]]) -> List[TableInfo]:
        """
        Ingest several files, deriving each table name from its filename.

        Stops at the first failure; tables loaded before it remain.
        """
        tables = []
        for path in paths:
            path = Path(path)
            tables.append(self.ingest(path, derive_table_name(path.name)))
        return tables
