"""
HTTP client for a remote metadata service.

Posts {"operation": ..., "email": ..., ...params} to the service's db
endpoint with a bearer token and maps the JSON replies back to store values.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from duckit.catalog.store import (
    AccessCheck,
    DEFAULT_ROLE,
    FileRecordData,
    MetadataStore,
    MetadataStoreError,
    normalize_email,
)
from duckit.config.settings import get_settings

logger = logging.getLogger(__name__)


class RemoteMetadataStore(MetadataStore):
    """
    Metadata store backed by the /api/db operation endpoint.

    Args:
        url: Endpoint URL (defaults to settings.metadata_api_url)
        token: Bearer token (defaults to settings.metadata_api_token)
        client: Optional pre-configured httpx client
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        settings = get_settings()
        self.url = url or settings.metadata_api_url
        self.token = token if token is not None else settings.metadata_api_token
        self.client = client or httpx.Client(timeout=settings.http_timeout_seconds)

    def close(self):
        self.client.close()

    def _call(self, operation: str, email: str, **params) -> Dict[str, Any]:
        payload = {"operation": operation, "email": normalize_email(email), **params}
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        try:
            response = self.client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise MetadataStoreError(f"{operation} failed: {e}") from e

        try:
            body = response.json() if response.content else {}
        except ValueError as e:
            raise MetadataStoreError(
                f"{operation} returned invalid JSON (HTTP {response.status_code})") from e

        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise MetadataStoreError(
                message or f"{operation} failed: HTTP {response.status_code}")

        if not isinstance(body, dict):
            raise MetadataStoreError(f"{operation} returned an unexpected reply")

        return body

    def check_user(self, email: str, user_id: Optional[str] = None) -> AccessCheck:
        body = self._call("user.check", email, userId=user_id)
        return AccessCheck(
            allowed=bool(body.get("allowed", False)),
            role=body.get("role") or DEFAULT_ROLE,
            limits=body.get("limits") or {},
        )

    def get_role(self, email: str) -> str:
        return self._call("user.role", email).get("role") or DEFAULT_ROLE

    def get_limits(self, email: str) -> AccessCheck:
        body = self._call("user.limits", email)
        return AccessCheck(
            allowed=True,
            role=body.get("role") or DEFAULT_ROLE,
            limits=body.get("limits") or {},
        )

    def list_files(self, email: str) -> List[FileRecordData]:
        files = self._call("files.list", email).get("files") or []
        return [FileRecordData.from_dict(f) for f in files]

    def count_files(self, email: str) -> int:
        return int(self._call("files.count", email).get("count") or 0)

    def add_file(
        self,
        email: str,
        server_filename: str,
        download_url: str,
        format: str,
        display_name: Optional[str] = None,
        size_mb: Optional[float] = None,
        user_id: Optional[str] = None,
    ) -> FileRecordData:
        body = self._call(
            "files.add",
            email,
            user_id=user_id,
            server_filename=server_filename,
            display_name=display_name,
            download_url=download_url,
            size_mb=size_mb,
            format=format,
        )
        record = body.get("file")
        if not isinstance(record, dict) or not record:
            raise MetadataStoreError("files.add returned no record")
        try:
            return FileRecordData.from_dict(record)
        except TypeError as e:
            raise MetadataStoreError(f"files.add returned an incomplete record: {e}") from e

    def rename_file(self, email: str, file_id: Any, display_name: str) -> bool:
        body = self._call("files.rename", email, id=file_id, display_name=display_name)
        return bool(body.get("success"))

    def delete_file(self, email: str, file_id: Any) -> bool:
        return bool(self._call("files.delete", email, id=file_id).get("success"))
