"""
Bundle exporter for engine tables.

Produces either a single Parquet file or a ZIP database bundle:

- manifest.json - ordered table list with file names and row counts
- schema.sql - one CREATE TABLE statement per table
- README.md - human-readable summary
- {table}.parquet - one file per table

manifest.json and schema.sql are rendered from table metadata only and are
byte-identical for identical tables.
"""

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from duckit.common.metrics import export_size_bytes, track_export
from duckit.engine.adapter import AnalyticalEngine, EngineError, TableInfo
from duckit.export.ddl_generator import DDLGenerator

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
SCHEMA_NAME = "schema.sql"
README_NAME = "README.md"

# Fixed member timestamp (earliest the ZIP format can store)
ZIP_MEMBER_DATE = (1980, 1, 1, 0, 0, 0)
ZIP_COMPRESS_LEVEL = 9

ProgressCallback = Callable[[str, str, int], None]


class ExportError(Exception):
    """Raised when the requested artifact cannot be produced."""
    pass


@dataclass
class ExportBundle:
    """A finished export artifact."""
    data: bytes
    manifest: Dict[str, Any]
    filename: str
    tables: List[TableInfo] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def parquet_filename(table_name: str) -> str:
    return f"{table_name}.parquet"


def generate_database_name(tables: Sequence[TableInfo]) -> str:
    """
    Build a display name for a bundle from its table names.

    Concatenates the names, drops non-alphanumeric characters and keeps the
    first 20 characters. Falls back to "database".
    """
    joined = "".join(t.name for t in tables)
    name = re.sub(r"[^a-zA-Z0-9]", "", joined)[:20]
    return name or "database"


def build_manifest(tables: Sequence[TableInfo]) -> Dict[str, Any]:
    return {
        "tables": [
            {
                "name": t.name,
                "files": [parquet_filename(t.name)],
                "rowCount": t.row_count,
            }
            for t in tables
        ],
        "chunked": False,
    }


def render_manifest(manifest: Dict[str, Any]) -> str:
    return json.dumps(manifest, indent=2)


def build_readme(tables: Sequence[TableInfo]) -> str:
    table_lines = "\n".join(f"- {t.name}: {t.row_count:,} rows" for t in tables)
    return (
        "# DuckIt Export\n"
        "\n"
        "This ZIP bundle was created by DuckIt.\n"
        "\n"
        "## Contents\n"
        "- manifest.json: Table metadata\n"
        "- schema.sql: DDL statements\n"
        "- *.parquet: Table data files\n"
        "\n"
        "## Tables\n"
        f"{table_lines}\n"
        "\n"
        "## Usage\n"
        "Import into DuckDB:\n"
        "```sql\n"
        "-- For each table:\n"
        "CREATE TABLE table_name AS SELECT * FROM read_parquet('table_name.parquet');\n"
        "```\n"
    )


class BundleExporter:
    """
    Exports engine tables as Parquet files or a ZIP bundle.

    Every Parquet export goes through the engine's virtual files, which are
    removed again before returning.
    """

    def __init__(self, engine: AnalyticalEngine, ddl_generator: Optional[DDLGenerator] = None):
        self.engine = engine
        self.ddl_generator = ddl_generator or DDLGenerator()

    def resolve_tables(self, tables: Optional[Sequence[str]] = None) -> List[TableInfo]:
        """
        Look up table metadata.

        Args:
            tables: Table names in the desired order (None = all tables by name)

        Raises:
            ExportError: If a named table does not exist
        """
        try:
            if tables is None:
                return self.engine.list_tables()

            resolved = []
            for name in tables:
                info = self.engine.describe_table(name)
                if info is None:
                    raise ExportError(f"Table not found: {name}")
                resolved.append(info)
            return resolved
        except EngineError as e:
            raise ExportError(f"Failed to read table metadata: {e}") from e

    def export_parquet_bytes(self, table_name: str, filename: str) -> bytes:
        """Export a table to a scratch virtual file and return its bytes."""
        try:
            self.engine.export_table(table_name, filename)
            return self.engine.read_virtual_file(filename)
        except EngineError as e:
            raise ExportError(f"Failed to export {table_name}: {e}") from e
        finally:
            self._discard_scratch(filename)

    def _discard_scratch(self, filename: str) -> None:
        try:
            self.engine.remove_virtual_file(filename)
        except EngineError as e:
            logger.warning(f"Could not remove scratch file {filename}: {e}")

    @track_export("parquet")
    def export_table(self, table_name: str) -> bytes:
        """
        Export one named table to Parquet bytes.

        Raises:
            ExportError: If the table does not exist or the export fails
        """
        self.resolve_tables([table_name])
        data = self.export_parquet_bytes(table_name, parquet_filename(table_name))
        export_size_bytes.labels(kind="parquet").observe(len(data))
        return data

    def export_single(self, tables: Optional[Sequence[str]] = None) -> bytes:
        """
        Export the only table as a single Parquet file.

        Args:
            tables: Optional explicit selection (must name exactly one table)

        Raises:
            ExportError: If there is no table or more than one
        """
        resolved = self.resolve_tables(tables)
        if not resolved:
            raise ExportError("No tables to export")
        if len(resolved) > 1:
            raise ExportError(
                f"Single-file export needs exactly one table, found {len(resolved)}")
        return self.export_table(resolved[0].name)

    @track_export("bundle")
    def export_bundle(
        self,
        tables: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        database_name: Optional[str] = None,
    ) -> ExportBundle:
        """
        Export tables as a ZIP database bundle.

        Args:
            tables: Table names in manifest order (None = all tables by name)
            on_progress: Callback receiving (stage, message, percent)
            database_name: Base name of the ZIP file
                (defaults to generate_database_name)

        Returns:
            ExportBundle with the ZIP bytes and the manifest

        Raises:
            ExportError: If there are no tables or an export fails
        """
        def report(stage: str, message: str, percent: int):
            if on_progress:
                on_progress(stage, message, percent)

        resolved = self.resolve_tables(tables)
        if not resolved:
            raise ExportError("No tables to export")

        report("exporting", "Creating ZIP bundle...", 0)

        parquet_files = []
        for i, table in enumerate(resolved):
            report("exporting", f"Exporting {table.name}...",
                   round((i + 1) / len(resolved) * 80))
            filename = parquet_filename(table.name)
            parquet_files.append((filename, self.export_parquet_bytes(table.name, filename)))

        manifest = build_manifest(resolved)

        report("compressing", "Compressing ZIP...", 85)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            self._write_member(zf, MANIFEST_NAME, render_manifest(manifest).encode("utf-8"))
            self._write_member(
                zf, SCHEMA_NAME, self.ddl_generator.generate_schema(resolved).encode("utf-8"))
            self._write_member(zf, README_NAME, build_readme(resolved).encode("utf-8"))
            for filename, data in parquet_files:
                self._write_member(zf, filename, data)

        data = buffer.getvalue()
        export_size_bytes.labels(kind="bundle").observe(len(data))

        name = database_name or generate_database_name(resolved)
        logger.info(
            f"Exported bundle {name}.zip: {len(resolved)} tables, {len(data)} bytes")

        return ExportBundle(
            data=data,
            manifest=manifest,
            filename=f"{name}.zip",
            tables=resolved,
        )

    @staticmethod
    def _write_member(zf: zipfile.ZipFile, name: str, data: bytes) -> None:
        info = zipfile.ZipInfo(name, date_time=ZIP_MEMBER_DATE)
        info.external_attr = 0o644 << 16
        zf.writestr(info, data, compress_type=zipfile.ZIP_DEFLATED,
                    compresslevel=ZIP_COMPRESS_LEVEL)
