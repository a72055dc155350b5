"""
Publish pipeline: identity and tiers, admission control, token-authenticated
transfer and workflow orchestration.
"""

from duckit.publish.errors import (
    PublishError,
    RoleNotLoadedError,
    PublishInProgressError,
    RecordPersistError,
    InvalidArtifactError,
)
from duckit.publish.identity import (
    Identity,
    Role,
    StorageTier,
    entitled_tier,
    load_identity,
    resolve_tier,
)
from duckit.publish.transfer import (
    CancelToken,
    StorageStatus,
    TokenError,
    TransferClient,
    TransferError,
    TransferFailureReason,
    TransferResult,
    TransferState,
    UploadAttempt,
    UploadToken,
    percentage,
)
from duckit.publish.admission import (
    AdmissionController,
    AdmissionDecision,
    AdmissionDenied,
    ArtifactKind,
    DenialReason,
)
from duckit.publish.orchestrator import (
    ArtifactSource,
    BufferSource,
    BundleSource,
    ConversionResult,
    FileSource,
    PublishOrchestrator,
    PublishResult,
)

__all__ = [  # ruff: noqa: RUF022
    # Errors
    "PublishError",
    "RoleNotLoadedError",
    "PublishInProgressError",
    "RecordPersistError",
    "InvalidArtifactError",
    # Identity
    "Identity",
    "Role",
    "StorageTier",
    "entitled_tier",
    "load_identity",
    "resolve_tier",
    # Transfer
    "CancelToken",
    "StorageStatus",
    "TokenError",
    "TransferClient",
    "TransferError",
    "TransferFailureReason",
    "TransferResult",
    "TransferState",
    "UploadAttempt",
    "UploadToken",
    "percentage",
    # Admission
    "AdmissionController",
    "AdmissionDecision",
    "AdmissionDenied",
    "ArtifactKind",
    "DenialReason",
    # Orchestration
    "ArtifactSource",
    "BufferSource",
    "BundleSource",
    "ConversionResult",
    "FileSource",
    "PublishOrchestrator",
    "PublishResult",
]
