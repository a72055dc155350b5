"""
Metadata catalog: users, role defaults and published file records.
"""

from duckit.catalog.store import (
    AccessCheck,
    FileRecordData,
    MetadataStore,
    MetadataStoreError,
    SqlMetadataStore,
    merge_limits,
)
from duckit.catalog.remote import RemoteMetadataStore

__all__ = [
    "AccessCheck",
    "FileRecordData",
    "MetadataStore",
    "MetadataStoreError",
    "SqlMetadataStore",
    "merge_limits",
    "RemoteMetadataStore",
]
