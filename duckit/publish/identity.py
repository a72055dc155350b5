"""
Identities, roles and storage tiers.

An identity is loaded from the metadata store before any publish workflow
may run. Until then its role is unknown and the workflows refuse to act.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from duckit.catalog.store import MetadataStore, MetadataStoreError

logger = logging.getLogger(__name__)


class StorageTier(str, Enum):
    """Storage tier attached to every upload request (wire values)."""
    TEMPORARY = "temp"
    PERSISTENT = "persistent"
    PERMANENT = "permanent"


class Role(str, Enum):
    """User role."""
    PRO = "pro"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        try:
            return cls(value)
        except ValueError:
            return cls.PRO


@dataclass
class Identity:
    """
    The caller of a publish workflow.

    `allowed` means registered and not blocked. `role_loaded` is False while
    the role lookup is still pending.
    """
    email: Optional[str] = None
    user_id: Optional[str] = None
    role: Role = Role.PRO
    allowed: bool = False
    role_loaded: bool = True
    limits: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls()

    @classmethod
    def pending(cls, email: str, user_id: Optional[str] = None) -> "Identity":
        return cls(email=email, user_id=user_id, role_loaded=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.email)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == Role.ADMIN

    @property
    def can_persist(self) -> bool:
        """Authenticated and allow-listed."""
        return self.is_authenticated and self.allowed

    @property
    def max_files(self) -> Optional[int]:
        return self.limits.get("max_files")

    @property
    def max_file_size_mb(self) -> Optional[float]:
        return self.limits.get("max_file_size_mb")


def load_identity(
    store: MetadataStore,
    email: Optional[str],
    user_id: Optional[str] = None,
) -> Identity:
    """
    Build a loaded identity from the metadata store.

    Unknown users are registered by the store. If the lookup fails the
    identity is loaded but not allowed, so it can only use the temporary
    tier.
    """
    if not email:
        return Identity.anonymous()

    try:
        check = store.check_user(email, user_id)
    except MetadataStoreError as e:
        logger.warning(f"Identity lookup failed for {email}: {e}")
        return Identity(email=email, user_id=user_id, allowed=False, role_loaded=True)

    return Identity(
        email=email,
        user_id=user_id,
        role=Role.parse(check.role),
        allowed=check.allowed,
        role_loaded=True,
        limits=dict(check.limits),
    )


def entitled_tier(identity: Identity) -> StorageTier:
    """Highest tier the identity may use."""
    if identity.is_admin:
        return StorageTier.PERMANENT
    if identity.can_persist:
        return StorageTier.PERSISTENT
    return StorageTier.TEMPORARY


def resolve_tier(identity: Identity, requested: StorageTier) -> StorageTier:
    """
    Map a requested tier onto what the identity may use.

    Temporary stays temporary. Any other request becomes the identity's
    entitled tier, which is temporary for callers that are not allowed.
    """
    requested = StorageTier(requested)
    if requested == StorageTier.TEMPORARY:
        return StorageTier.TEMPORARY
    return entitled_tier(identity)
