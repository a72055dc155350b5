"""
Export module.

Provides Parquet and ZIP bundle export, DDL rendering and pre-upload size
estimation.
"""

from duckit.export.bundle import (
    BundleExporter,
    ExportBundle,
    ExportError,
    build_manifest,
    build_readme,
    generate_database_name,
    render_manifest,
)
from duckit.export.ddl_generator import DDLGenerator
from duckit.export.estimator import SizeEstimator, bytes_to_mb

__all__ = [
    "BundleExporter",
    "ExportBundle",
    "ExportError",
    "build_manifest",
    "build_readme",
    "generate_database_name",
    "render_manifest",
    "DDLGenerator",
    "SizeEstimator",
    "bytes_to_mb",
]
