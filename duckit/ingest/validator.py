"""
File validator for conversion and quick-upload inputs.

Classifies a local file by extension and provides structured validation
results for the orchestrator.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from duckit.ingest.delimiter import DELIMITED_EXTENSIONS


class FileKind(str, Enum):
    """Kind of file supplied by the user."""
    DELIMITED = "delimited"
    PARQUET = "parquet"
    DATABASE = "database"
    UNKNOWN = "unknown"


@dataclass
class FileValidationResult:
    """Result of validating one local file."""
    valid: bool
    kind: FileKind
    filename: str = ""
    content_type: Optional[str] = None
    size_bytes: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None  # e.g. "not_found", "unsupported", "empty"


class FileValidator:
    """
    Validator for files entering the pipeline.

    Quick upload accepts Parquet and database files; conversion accepts
    delimited text.
    """

    PARQUET_EXTENSIONS = (".parquet",)
    DATABASE_EXTENSIONS = (".duckdb", ".db")

    CONTENT_TYPES = {
        FileKind.DELIMITED: "text/csv",
        FileKind.PARQUET: "application/vnd.apache.parquet",
        FileKind.DATABASE: "application/octet-stream",
    }

    def classify(self, filename: str) -> FileKind:
        name = filename.lower()
        if name.endswith(self.PARQUET_EXTENSIONS):
            return FileKind.PARQUET
        if name.endswith(self.DATABASE_EXTENSIONS):
            return FileKind.DATABASE
        if name.endswith(DELIMITED_EXTENSIONS):
            return FileKind.DELIMITED
        return FileKind.UNKNOWN

    def validate_path(
        self,
        path: Union[str, Path],
        accept: tuple = (FileKind.PARQUET, FileKind.DATABASE),
    ) -> FileValidationResult:
        """
        Validate a local file.

        Args:
            path: File to validate
            accept: File kinds accepted by the caller

        Returns:
            FileValidationResult with validation status
        """
        path = Path(path)
        kind = self.classify(path.name)

        if not path.is_file():
            return FileValidationResult(
                valid=False,
                kind=kind,
                filename=path.name,
                error=f"File not found: {path}",
                error_type="not_found",
            )

        if kind not in accept:
            accepted = ", ".join(k.value for k in accept)
            return FileValidationResult(
                valid=False,
                kind=kind,
                filename=path.name,
                error=f"Unsupported file type for {path.name} (expected {accepted})",
                error_type="unsupported",
            )

        size_bytes = path.stat().st_size
        if size_bytes == 0:
            return FileValidationResult(
                valid=False,
                kind=kind,
                filename=path.name,
                error=f"File {path.name} is empty",
                error_type="empty",
            )

        return FileValidationResult(
            valid=True,
            kind=kind,
            filename=path.name,
            content_type=self.CONTENT_TYPES.get(kind),
            size_bytes=size_bytes,
        )
