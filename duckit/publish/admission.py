"""
Upload admission control.

Decides before any network transfer whether an upload may proceed for a
given identity, tier, artifact kind and size. Rules run in order and stop at
the first denial:

0. Admin role: always allowed (permanent tier unless temporary was asked)
1. Non-temporary request from a caller who may not persist: downgrade to
   temporary (policy substitution, not a denial)
2. Fixed per-kind size ceilings (all tiers)
3. Non-temporary: file-count quota and per-identity size limit
4. Non-temporary: remaining tier capacity on the remote service

These checks fail fast for the caller; the remote service remains the
authority and may still reject the upload.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from duckit.catalog.store import MetadataStore
from duckit.common.logging_config import get_structured_logger
from duckit.common.metrics import record_admission
from duckit.config.settings import Settings, get_settings
from duckit.publish.errors import PublishError
from duckit.publish.identity import Identity, StorageTier, resolve_tier
from duckit.publish.transfer import StorageStatus

logger = get_structured_logger(__name__)

CapacityProbe = Callable[[StorageTier], Optional[StorageStatus]]


class ArtifactKind(str, Enum):
    """What is being uploaded; decides which ceiling and inflation apply."""
    DATABASE_BUNDLE = "database_bundle"  # size is the Parquet estimate
    PARQUET = "parquet"
    DATABASE_FILE = "database_file"  # .duckdb / .db


class DenialReason(str, Enum):
    ARTIFACT_TOO_LARGE = "ARTIFACT_TOO_LARGE"
    FILE_COUNT_LIMIT = "FILE_COUNT_LIMIT"
    STORAGE_FULL = "STORAGE_FULL"


@dataclass
class AdmissionDecision:
    """Outcome of an admission check."""
    allowed: bool
    tier: StorageTier
    reason: Optional[DenialReason] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    downgraded: bool = False

    @classmethod
    def allow(cls, tier: StorageTier, downgraded: bool = False) -> "AdmissionDecision":
        return cls(allowed=True, tier=tier, downgraded=downgraded)

    @classmethod
    def deny(
        cls,
        tier: StorageTier,
        reason: DenialReason,
        detail: Dict[str, Any],
        message: str,
    ) -> "AdmissionDecision":
        return cls(allowed=False, tier=tier, reason=reason, detail=detail, message=message)


class AdmissionDenied(PublishError):
    """Raised by workflows when admission denies an upload."""

    def __init__(self, decision: AdmissionDecision):
        super().__init__(decision.message or f"Upload denied: {decision.reason.value}")
        self.decision = decision
        self.reason = decision.reason
        self.detail = decision.detail


def _mb(value: float) -> float:
    return round(value, 2)


class AdmissionController:
    """
    Applies the admission rules.

    Args:
        store: Metadata store used for the file-count quota
        capacity_probe: Returns remote tier capacity, or None when the
            service cannot be asked (the capacity check is then skipped)
        settings: Ceilings and inflation factor (defaults to get_settings())
    """

    def __init__(
        self,
        store: MetadataStore,
        capacity_probe: Optional[CapacityProbe] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.capacity_probe = capacity_probe
        self.settings = settings or get_settings()

    def ceiling_mb(self, kind: ArtifactKind) -> float:
        if kind == ArtifactKind.DATABASE_BUNDLE:
            return self.settings.max_database_bundle_mb
        if kind == ArtifactKind.PARQUET:
            return self.settings.max_parquet_upload_mb
        return self.settings.max_database_upload_mb

    def inflated_mb(self, size_mb: float, kind: ArtifactKind) -> float:
        """Estimated final size on the server for capacity and bundle checks."""
        if kind == ArtifactKind.DATABASE_FILE:
            return size_mb
        return size_mb * self.settings.db_size_inflation_factor

    def decide(
        self,
        identity: Identity,
        requested_tier: StorageTier,
        size_mb: float,
        artifact_kind: ArtifactKind,
    ) -> AdmissionDecision:
        """
        Decide whether an upload may proceed.

        Raises:
            MetadataStoreError: If the file count cannot be read
        """
        decision = self._decide(identity, StorageTier(requested_tier), size_mb, artifact_kind)

        if decision.allowed:
            record_admission("allow")
        else:
            record_admission("deny", decision.reason.value)
        logger.info(
            "Admission decision",
            email=identity.email,
            requested_tier=StorageTier(requested_tier).value,
            tier=decision.tier.value,
            kind=artifact_kind.value,
            size_mb=_mb(size_mb),
            allowed=decision.allowed,
            reason=decision.reason.value if decision.reason else None,
            downgraded=decision.downgraded,
        )
        return decision

    def _decide(
        self,
        identity: Identity,
        requested: StorageTier,
        size_mb: float,
        kind: ArtifactKind,
    ) -> AdmissionDecision:
        # 0. Admin bypass
        if identity.is_admin:
            tier = StorageTier.TEMPORARY if requested == StorageTier.TEMPORARY \
                else StorageTier.PERMANENT
            return AdmissionDecision.allow(tier)

        # 1. Policy substitution
        tier = resolve_tier(identity, requested)
        downgraded = requested != StorageTier.TEMPORARY and tier == StorageTier.TEMPORARY

        # 2. Fixed ceilings
        limit_mb = self.ceiling_mb(kind)
        actual_mb = self.inflated_mb(size_mb, kind) \
            if kind == ArtifactKind.DATABASE_BUNDLE else size_mb
        if actual_mb > limit_mb:
            return AdmissionDecision.deny(
                tier,
                DenialReason.ARTIFACT_TOO_LARGE,
                {"limit_mb": limit_mb, "actual_mb": _mb(actual_mb)},
                f"File too large: {_mb(actual_mb)} MB exceeds the {limit_mb} MB limit",
            )

        if tier == StorageTier.TEMPORARY:
            return AdmissionDecision.allow(tier, downgraded=downgraded)

        # 3. Per-identity quota
        max_files = identity.max_files
        if max_files is not None:
            current = self.store.count_files(identity.email)
            if current >= max_files:
                return AdmissionDecision.deny(
                    tier,
                    DenialReason.FILE_COUNT_LIMIT,
                    {"current_count": current, "max_count": max_files},
                    f"File limit reached ({current}/{max_files}). "
                    "Delete files or use temporary storage.",
                )

        max_file_size_mb = identity.max_file_size_mb
        if max_file_size_mb is not None and size_mb > max_file_size_mb:
            return AdmissionDecision.deny(
                tier,
                DenialReason.ARTIFACT_TOO_LARGE,
                {"limit_mb": max_file_size_mb, "actual_mb": _mb(size_mb)},
                f"File too large: {_mb(size_mb)} MB exceeds your "
                f"{max_file_size_mb} MB limit",
            )

        # 4. Remote capacity
        status = self.capacity_probe(StorageTier.PERSISTENT) if self.capacity_probe else None
        if status is None:
            logger.warning("Storage status unavailable, skipping capacity check",
                           email=identity.email)
            return AdmissionDecision.allow(tier)

        estimated_mb = self.inflated_mb(size_mb, kind)
        if not status.can_upload or estimated_mb > status.available_mb:
            return AdmissionDecision.deny(
                tier,
                DenialReason.STORAGE_FULL,
                {"available_mb": status.available_mb, "estimated_mb": _mb(estimated_mb)},
                f"Not enough storage: ~{_mb(estimated_mb)} MB needed, "
                f"{status.available_mb} MB available",
            )

        return AdmissionDecision.allow(tier)
