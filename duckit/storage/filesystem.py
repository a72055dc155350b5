"""
Filesystem storage backend implementation.

Stores artifacts in a local directory:
- artifacts/{filename} - converted Parquet files kept locally
"""

import shutil
from pathlib import Path
from typing import BinaryIO, List, Union

from duckit.storage.adapter import ArtifactStorage, StorageError

URI_SCHEME = "fs://"
ARTIFACTS_DIR = "artifacts"


class FilesystemStorage(ArtifactStorage):
    """Filesystem-based artifact storage."""

    def __init__(self, base_path: str = "./storage"):
        """
        Initialize filesystem storage.

        Args:
            base_path: Root directory for all storage
        """
        self.base_path = Path(base_path).resolve()
        self.artifacts_path = self.base_path / ARTIFACTS_DIR
        self.artifacts_path.mkdir(parents=True, exist_ok=True)

    def _uri_to_path(self, uri: str) -> Path:
        """
        Convert a URI to a filesystem path.

        Raises:
            StorageError: If URI format is invalid or escapes the storage root
        """
        if not uri.startswith(URI_SCHEME):
            raise StorageError(f"Invalid URI scheme: {uri}")

        path = (self.base_path / uri[len(URI_SCHEME):]).resolve()
        if self.base_path not in path.parents:
            raise StorageError(f"URI outside storage root: {uri}")
        return path

    def _path_to_uri(self, path: Path) -> str:
        relative_path = path.relative_to(self.base_path)
        return f"{URI_SCHEME}{relative_path.as_posix()}"

    def store(self, data: Union[bytes, BinaryIO], filename: str) -> str:
        name = Path(filename).name
        if not name or name != filename:
            raise StorageError(f"Invalid artifact filename: {filename!r}")

        target_path = self.artifacts_path / name
        try:
            with open(target_path, "wb") as f:
                if isinstance(data, (bytes, bytearray)):
                    f.write(data)
                else:
                    shutil.copyfileobj(data, f)
        except OSError as e:
            raise StorageError(f"Failed to store artifact: {e}") from e

        return self._path_to_uri(target_path)

    def retrieve(self, uri: str) -> bytes:
        path = self._uri_to_path(uri)
        if not path.is_file():
            raise StorageError(f"File not found: {uri}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to retrieve file: {e}") from e

    def exists(self, uri: str) -> bool:
        path = self._uri_to_path(uri)
        return path.exists() and path.is_file()

    def delete(self, uri: str) -> None:
        path = self._uri_to_path(uri)
        if not path.is_file():
            raise StorageError(f"File not found: {uri}")
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e

    def get_size(self, uri: str) -> int:
        path = self._uri_to_path(uri)
        if not path.is_file():
            raise StorageError(f"File not found: {uri}")
        return path.stat().st_size

    def list_artifacts(self) -> List[str]:
        return sorted(
            self._path_to_uri(p) for p in self.artifacts_path.iterdir() if p.is_file()
        )
