"""
Storage factory for creating artifact storage instances.

Provides singleton access to the storage backend based on configuration.
"""

from functools import lru_cache

from duckit.config.settings import get_settings
from duckit.storage.adapter import ArtifactStorage
from duckit.storage.filesystem import FilesystemStorage


@lru_cache()
def get_artifact_storage() -> ArtifactStorage:
    """
    Get or create the artifact storage instance.

    Returns:
        ArtifactStorage instance (FilesystemStorage)
    """
    settings = get_settings()
    return FilesystemStorage(base_path=settings.storage_path)


def reset_artifact_storage() -> None:
    """Reset the storage instance (useful for testing)."""
    get_artifact_storage.cache_clear()
