"""
Token-authenticated transfer client for the remote storage service.

Service endpoints, relative to the service base URL:

- POST upload-token {filename, content_length, storage_tier}
- POST <upload_url> multipart "file" (the token is part of upload_url)
- GET status?tier=temp|persistent
- POST delete {filename}

Each publish runs one UploadAttempt:
IDLE -> TOKEN_REQUESTED -> TRANSFERRING -> COMPLETE, or -> FAILED.
There is no retry; a new attempt requests a fresh token.
"""

import io
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from duckit.common.logging_config import get_structured_logger
from duckit.common.metrics import transfer_duration_seconds, transfers_total
from duckit.config.settings import get_settings
from duckit.publish.errors import PublishError
from duckit.publish.identity import StorageTier

logger = logging.getLogger(__name__)
structured_logger = get_structured_logger(__name__)

ProgressCallback = Callable[[int, int], None]


class TransferFailureReason(str, Enum):
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


class TransferState(str, Enum):
    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    TRANSFERRING = "transferring"
    COMPLETE = "complete"
    FAILED = "failed"


class TokenError(PublishError):
    """Raised when the service does not issue an upload token."""
    reason = "TOKEN_FAILED"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransferError(PublishError):
    """
    Raised when the byte transfer fails.

    Attributes:
        reason: TransferFailureReason
        status_code: HTTP status for server-side rejections
    """

    def __init__(
        self,
        message: str,
        reason: TransferFailureReason,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    @property
    def cancelled(self) -> bool:
        return self.reason == TransferFailureReason.CANCELLED


class CancelToken:
    """Thread-safe cancellation flag shared with a running transfer."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class _UploadCancelled(Exception):
    pass


@dataclass(frozen=True)
class UploadToken:
    """Short-lived authorization for one upload."""
    token: str
    filename: str
    storage_tier: str
    expires_in: int
    upload_url: str
    max_size_mb: Optional[float]
    full_upload_url: str

    @classmethod
    def from_response(cls, data: Dict[str, Any], base_url: str) -> "UploadToken":
        if not isinstance(data, dict):
            raise TokenError("Invalid upload token response: not an object")
        token = data.get("token")
        upload_url = data.get("upload_url")
        if not isinstance(token, str) or not token:
            raise TokenError("Invalid upload token response: missing token")
        if not isinstance(upload_url, str) or not upload_url:
            raise TokenError("Invalid upload token response: missing upload_url")
        return cls(
            token=token,
            filename=data.get("filename", ""),
            storage_tier=data.get("storage_tier", StorageTier.TEMPORARY.value),
            expires_in=int(data.get("expires_in") or 0),
            upload_url=upload_url,
            max_size_mb=data.get("max_size_mb"),
            full_upload_url=join_url(base_url, upload_url),
        )


@dataclass
class TransferResult:
    """Durable reference returned by a completed upload."""
    download_url: str
    filename: str
    expires_in_hours: Optional[float]
    size_bytes: int


@dataclass
class StorageStatus:
    """Remaining capacity of one storage tier."""
    available_mb: float = 0
    usage_percent: float = 0
    file_count: int = 0
    can_upload: bool = True
    max_file_size_mb: float = 150

    # Capacity assumed when the service reports raw usage only
    RAW_MAX_MB = {"persistent": 10240, "temp": 2048}

    @classmethod
    def from_response(cls, data: Dict[str, Any], tier: str = "persistent") -> "StorageStatus":
        if "available_mb" not in data and f"{tier}_size_mb" in data:
            used = data.get(f"{tier}_size_mb") or 0
            capacity = data.get(f"{tier}_max_mb") or cls.RAW_MAX_MB.get(tier, 2048)
            available = capacity - used
            return cls(
                available_mb=round(available),
                usage_percent=round(used / capacity * 100),
                file_count=data.get(f"{tier}_files") or 0,
                can_upload=available > 1,
                max_file_size_mb=data.get("max_file_size_mb") or 150,
            )

        can_upload = data.get("can_upload")
        return cls(
            available_mb=data.get("available_mb") or 0,
            usage_percent=data.get("usage_percent") or 0,
            file_count=data.get("file_count") or 0,
            can_upload=True if can_upload is None else bool(can_upload),
            max_file_size_mb=data.get("max_file_size_mb") or 150,
        )


def join_url(base_url: str, path: str) -> str:
    """Join the service base URL with a relative path or absolute URL."""
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def percentage(bytes_sent: int, total_bytes: int) -> int:
    """Whole-number upload percentage (100 for an empty payload)."""
    if total_bytes <= 0:
        return 100
    return min(100, round(bytes_sent * 100 / total_bytes))


class _ProgressReader(io.BytesIO):
    """
    Upload body that reports progress as httpx reads it.

    Reported values never decrease, even if the body is rewound.
    """

    def __init__(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback],
        cancel: Optional[CancelToken],
    ):
        super().__init__(data)
        self.total = len(data)
        self.sent = 0
        self.reported = False
        self._on_progress = on_progress
        self._cancel = cancel

    def read(self, size: Optional[int] = -1) -> bytes:
        if self._cancel is not None and self._cancel.is_cancelled:
            raise _UploadCancelled()
        chunk = super().read(size)
        position = self.tell()
        if chunk and position > self.sent:
            self.sent = position
            self._report()
        return chunk

    def _report(self) -> None:
        self.reported = True
        if self._on_progress:
            self._on_progress(self.sent, self.total)

    def finish(self) -> None:
        """Emit the final (total, total) pair if it has not been reported."""
        if not self.reported or self.sent != self.total:
            self.sent = self.total
            self._report()


class TransferClient:
    """
    Client for the remote admission and storage service.

    Args:
        base_url: Service base URL (defaults to settings.service_base_url)
        api_key: Bearer key for token, status and delete calls
        client: Optional pre-configured httpx client
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.service_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.service_api_key
        self.upload_timeout = settings.upload_timeout_seconds
        self.client = client or httpx.Client(timeout=settings.http_timeout_seconds)

    def close(self):
        self.client.close()

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    # ==================== Token ====================

    def request_token(
        self,
        filename: str,
        byte_length: int,
        tier: StorageTier = StorageTier.TEMPORARY,
    ) -> UploadToken:
        """
        Request a single-use upload token.

        Raises:
            TokenError: On network failure, non-2xx status or a malformed reply
        """
        payload = {
            "filename": filename,
            "content_length": byte_length,
            "storage_tier": StorageTier(tier).value,
        }
        try:
            response = self.client.post(
                join_url(self.base_url, "upload-token"),
                json=payload,
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            raise TokenError(f"Failed to get upload token: {e}") from e

        if not response.is_success:
            raise TokenError(
                f"Failed to get upload token: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return UploadToken.from_response(response.json(), self.base_url)
        except (ValueError, KeyError, TypeError) as e:
            raise TokenError("Invalid upload token response") from e

    # ==================== Transfer ====================

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Upload failed: HTTP {response.status_code}"
        if isinstance(body, dict):
            message = body.get("detail") or body.get("error")
            if message:
                return message if isinstance(message, str) else str(message)
        return f"HTTP {response.status_code}"

    def transfer(
        self,
        data: bytes,
        filename: str,
        token: UploadToken,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        content_type: str = "application/octet-stream",
    ) -> TransferResult:
        """
        Upload bytes with a token.

        Args:
            data: Artifact bytes
            filename: Multipart filename
            token: Token from request_token
            on_progress: Receives non-decreasing (bytes_sent, total_bytes)
            cancel: Cooperative cancellation flag
            content_type: Content type of the file part

        Raises:
            TransferError: On network failure, cancellation, non-2xx status
                or a malformed reply
        """
        if cancel is not None and cancel.is_cancelled:
            raise TransferError("Upload cancelled", TransferFailureReason.CANCELLED)

        reader = _ProgressReader(data, on_progress, cancel)
        try:
            response = self.client.post(
                token.full_upload_url,
                files={"file": (filename, reader, content_type)},
                timeout=self.upload_timeout,
            )
        except _UploadCancelled as e:
            raise TransferError("Upload cancelled", TransferFailureReason.CANCELLED) from e
        except httpx.DecodingError as e:
            raise TransferError(
                "Invalid response from server",
                TransferFailureReason.MALFORMED_RESPONSE) from e
        except httpx.HTTPError as e:
            raise TransferError(
                "Network error during upload", TransferFailureReason.NETWORK) from e

        if not response.is_success:
            raise TransferError(
                self._error_message(response),
                TransferFailureReason.HTTP_STATUS,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransferError(
                "Invalid response from server",
                TransferFailureReason.MALFORMED_RESPONSE) from e

        if not isinstance(body, dict) or not body.get("download_url"):
            raise TransferError(
                "Invalid response from server", TransferFailureReason.MALFORMED_RESPONSE)

        reader.finish()
        return TransferResult(
            download_url=body["download_url"],
            filename=body.get("filename") or token.filename or filename,
            expires_in_hours=body.get("expires_in_hours"),
            size_bytes=len(data),
        )

    def publish(
        self,
        data: bytes,
        filename: str,
        tier: StorageTier = StorageTier.TEMPORARY,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        content_type: str = "application/octet-stream",
    ) -> TransferResult:
        """Run one upload attempt: token, then transfer."""
        attempt = UploadAttempt(self, data, filename, tier, content_type)
        return attempt.run(on_progress=on_progress, cancel=cancel)

    # ==================== Service status ====================

    def get_storage_status(
        self, tier: StorageTier = StorageTier.PERSISTENT
    ) -> Optional[StorageStatus]:
        """
        Fetch remaining capacity for a tier.

        Returns:
            StorageStatus, or None if the service could not be asked
        """
        tier_value = StorageTier(tier).value
        try:
            response = self.client.get(
                join_url(self.base_url, "status"),
                params={"tier": tier_value},
                headers=self._auth_headers(),
            )
            if not response.is_success:
                logger.warning(f"Storage status request failed: HTTP {response.status_code}")
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Storage status unavailable: {e}")
            return None

        if not isinstance(data, dict):
            return None
        return StorageStatus.from_response(data, tier_value)

    def delete_remote(self, filename: str) -> bool:
        """
        Ask the service to purge stored bytes. Best effort.

        Returns:
            True if the service accepted the request
        """
        try:
            response = self.client.post(
                join_url(self.base_url, "delete"),
                data={"filename": filename},
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Remote delete failed for {filename}: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"Remote delete failed for {filename}: HTTP {response.status_code}")
            return False
        return True


class UploadAttempt:
    """
    One single-use publish attempt.

    Tracks state from IDLE through token request and transfer to COMPLETE or
    FAILED.
    """

    def __init__(
        self,
        client: TransferClient,
        data: bytes,
        filename: str,
        tier: StorageTier,
        content_type: str = "application/octet-stream",
    ):
        self.client = client
        self.data = data
        self.filename = filename
        self.tier = StorageTier(tier)
        self.content_type = content_type
        self.state = TransferState.IDLE
        self.token: Optional[UploadToken] = None
        self.result: Optional[TransferResult] = None
        self.error: Optional[PublishError] = None

    def _fail(self, error: PublishError) -> PublishError:
        self.state = TransferState.FAILED
        self.error = error
        status = "cancelled" if getattr(error, "cancelled", False) else "failed"
        transfers_total.labels(tier=self.tier.value, status=status).inc()
        structured_logger.warning(
            "Upload attempt failed",
            filename=self.filename,
            tier=self.tier.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        return error

    def run(
        self,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> TransferResult:
        """
        Request a token and transfer the bytes.

        Raises:
            RuntimeError: If the attempt has already been run
            TokenError: If no token was issued
            TransferError: If the transfer failed or was cancelled
        """
        if self.state != TransferState.IDLE:
            raise RuntimeError(f"Upload attempt already used (state {self.state.value})")

        start_time = time.time()

        if cancel is not None and cancel.is_cancelled:
            raise self._fail(
                TransferError("Upload cancelled", TransferFailureReason.CANCELLED))

        self.state = TransferState.TOKEN_REQUESTED
        try:
            self.token = self.client.request_token(self.filename, len(self.data), self.tier)
        except TokenError as e:
            raise self._fail(e)

        self.state = TransferState.TRANSFERRING
        try:
            self.result = self.client.transfer(
                self.data,
                self.filename,
                self.token,
                on_progress=on_progress,
                cancel=cancel,
                content_type=self.content_type,
            )
        except TransferError as e:
            raise self._fail(e)

        self.state = TransferState.COMPLETE
        transfers_total.labels(tier=self.tier.value, status="complete").inc()
        transfer_duration_seconds.labels(tier=self.tier.value).observe(
            time.time() - start_time)
        structured_logger.info(
            "Upload complete",
            filename=self.result.filename,
            tier=self.tier.value,
            size_bytes=self.result.size_bytes,
        )
        return self.result
