"""
Pre-upload size estimation.

Runs the real Parquet export for each table, measures the result and throws
the bytes away. Tables are never modified.
"""

import logging
from typing import Optional, Sequence

from duckit.common.metrics import track_export
from duckit.engine.adapter import AnalyticalEngine
from duckit.export.bundle import BundleExporter

logger = logging.getLogger(__name__)


def estimate_filename(table_name: str) -> str:
    return f"_estimate_{table_name}.parquet"


def bytes_to_mb(size_bytes: int) -> float:
    return size_bytes / (1024 * 1024)


class SizeEstimator:
    """Estimates the Parquet size of a set of tables."""

    def __init__(self, engine: AnalyticalEngine, exporter: Optional[BundleExporter] = None):
        self.engine = engine
        self.exporter = exporter or BundleExporter(engine)

    @track_export("estimate")
    def estimate(self, tables: Optional[Sequence[str]] = None) -> int:
        """
        Sum of the Parquet export sizes of the given tables.

        Args:
            tables: Table names (None = all tables)

        Returns:
            Total size in bytes (0 when there are no tables)

        Raises:
            ExportError: If a table is missing or cannot be exported
        """
        total = 0
        for table in self.exporter.resolve_tables(tables):
            # Scratch file is removed by export_parquet_bytes on every path
            data = self.exporter.export_parquet_bytes(
                table.name, estimate_filename(table.name))
            total += len(data)

        logger.debug(f"Estimated Parquet size: {total} bytes")
        return total

    def estimate_mb(self, tables: Optional[Sequence[str]] = None) -> float:
        return bytes_to_mb(self.estimate(tables))
