"""
Ingest module for delimited text.

Provides delimiter detection, schema-inferring loading into the analytical
engine, and input file validation.
"""

from duckit.ingest.delimiter import (
    choose_delimiter,
    infer_delimiter,
    delimiter_for_extension,
)
from duckit.ingest.ingestor import (
    SchemaInferringIngestor,
    IngestError,
    derive_table_name,
    is_delimited_filename,
)
from duckit.ingest.validator import FileValidator, FileKind, FileValidationResult

__all__ = [  # ruff: noqa: RUF022
    # Delimiter detection
    "choose_delimiter",
    "infer_delimiter",
    "delimiter_for_extension",
    # Ingestion
    "SchemaInferringIngestor",
    "IngestError",
    "derive_table_name",
    "is_delimited_filename",
    # Validation
    "FileValidator",
    "FileKind",
    "FileValidationResult",
]
