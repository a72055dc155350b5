"""
DuckIt: convert delimited text to Parquet or a multi-table database bundle
and publish it to remote storage.
"""

__version__ = "0.1.0"
