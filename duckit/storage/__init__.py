"""
Local artifact storage.

Destination for converted artifacts the user keeps instead of publishing.
"""

from duckit.storage.adapter import ArtifactStorage, StorageError
from duckit.storage.filesystem import FilesystemStorage
from duckit.storage.factory import get_artifact_storage, reset_artifact_storage

__all__ = [
    "ArtifactStorage",
    "StorageError",
    "FilesystemStorage",
    "get_artifact_storage",
    "reset_artifact_storage",
]
