"""
Abstract base class for local artifact storage.

Defines the interface for keeping converted artifacts without publishing
them.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, List, Union


class StorageError(Exception):
    """Exception raised for storage-related errors."""
    pass


class ArtifactStorage(ABC):
    """
    Abstract base class for artifact storage backends.

    Artifacts are addressed by URI (e.g. 'fs://artifacts/sales.parquet').
    """

    @abstractmethod
    def store(self, data: Union[bytes, BinaryIO], filename: str) -> str:
        """
        Store an artifact, replacing any artifact of the same name.

        Args:
            data: Artifact bytes or a readable binary stream
            filename: Artifact filename (no directories)

        Returns:
            URI string for the stored artifact

        Raises:
            StorageError: If storage operation fails
        """
        pass

    @abstractmethod
    def retrieve(self, uri: str) -> bytes:
        """
        Retrieve an artifact by its URI.

        Raises:
            StorageError: If the artifact doesn't exist or can't be read
        """
        pass

    @abstractmethod
    def exists(self, uri: str) -> bool:
        pass

    @abstractmethod
    def delete(self, uri: str) -> None:
        """
        Delete an artifact.

        Raises:
            StorageError: If the artifact doesn't exist or can't be deleted
        """
        pass

    @abstractmethod
    def get_size(self, uri: str) -> int:
        """Get artifact size in bytes."""
        pass

    @abstractmethod
    def list_artifacts(self) -> List[str]:
        """List the URIs of all stored artifacts."""
        pass
