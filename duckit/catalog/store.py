"""
Metadata store for identities, limits and published file records.

Defines the store interface used by the publish pipeline and its SQL
implementation. Operation names match the HTTP dispatcher:

- user.check, user.role, user.limits
- files.list, files.count, files.add, files.rename, files.delete
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Generator, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from duckit.catalog.database import get_session_factory
from duckit.catalog.models import AppDefaults, AppUser, FileRecord, utcnow
from duckit.config.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "pro"
STATUS_ALLOWED = "allowed"
STATUS_BLOCKED = "blocked"
FILE_FORMATS = ("parquet", "duckdb")


class MetadataStoreError(Exception):
    """Raised when a metadata operation cannot be completed."""
    pass


def normalize_email(email: Optional[str]) -> str:
    if not email:
        raise MetadataStoreError("Email is required")
    return email.strip().lower()


def merge_limits(defaults: Optional[dict], override: Optional[dict]) -> Dict[str, Any]:
    """Role defaults overlaid with per-user overrides (None = unlimited)."""
    return {**(defaults or {}), **(override or {})}


@dataclass
class AccessCheck:
    """Result of user.check."""
    allowed: bool
    role: str
    limits: Dict[str, Any] = field(default_factory=dict)

    @property
    def max_files(self) -> Optional[int]:
        return self.limits.get("max_files")

    @property
    def max_file_size_mb(self) -> Optional[float]:
        return self.limits.get("max_file_size_mb")


@dataclass
class FileRecordData:
    """Plain value form of a file record."""
    id: Any
    user_email: str
    server_filename: str
    download_url: str
    format: str
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    size_mb: Optional[float] = None
    is_deleted: bool = False
    deleted_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_model(cls, record: FileRecord) -> "FileRecordData":
        return cls(**record.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecordData":
        known = {k: data.get(k) for k in cls.__dataclass_fields__ if k in data}
        known["is_deleted"] = bool(known.get("is_deleted") or False)
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetadataStore(ABC):
    """
    Abstract metadata store.

    Every operation is scoped to one identity by email.
    """

    @abstractmethod
    def check_user(self, email: str, user_id: Optional[str] = None) -> AccessCheck:
        """
        Check access for an identity, registering it on first sight.

        Raises:
            MetadataStoreError: If the store cannot be reached
        """
        pass

    @abstractmethod
    def get_role(self, email: str) -> str:
        """Return the identity's role (default role when unknown)."""
        pass

    @abstractmethod
    def get_limits(self, email: str) -> AccessCheck:
        """Return the role and effective limits without registering."""
        pass

    @abstractmethod
    def list_files(self, email: str) -> List[FileRecordData]:
        """Return non-deleted records, newest first."""
        pass

    @abstractmethod
    def count_files(self, email: str) -> int:
        """Return the number of non-deleted records."""
        pass

    @abstractmethod
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
        """Create a file record."""
        pass

    @abstractmethod
    def rename_file(self, email: str, file_id: Any, display_name: str) -> bool:
        """Change the display name of an owned record."""
        pass

    @abstractmethod
    def delete_file(self, email: str, file_id: Any) -> bool:
        """Purge the remote bytes (best effort) and soft-delete the record."""
        pass


class SqlMetadataStore(MetadataStore):
    """
    SQLAlchemy-backed metadata store.

    Args:
        session_factory: Session factory (defaults to the catalog database)
        app_name: Application scope for users and defaults
        remote_deleter: Called with the server filename before a soft
            delete; its failure never blocks the delete
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        app_name: Optional[str] = None,
        remote_deleter: Optional[Callable[[str], bool]] = None,
    ):
        if session_factory is None:
            session_factory = get_session_factory()
        self.session_factory = session_factory
        self.app_name = app_name or get_settings().app_name
        self.remote_deleter = remote_deleter

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Metadata store error: {e}")
            raise MetadataStoreError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ==================== Users ====================

    def _find_user(self, db: Session, email: str) -> Optional[AppUser]:
        return db.execute(
            select(AppUser).where(
                AppUser.email == email,
                AppUser.app_name == self.app_name,
            )
        ).scalar_one_or_none()

    def _role_defaults(self, db: Session, role: str) -> Dict[str, Any]:
        defaults = db.execute(
            select(AppDefaults).where(
                AppDefaults.app_name == self.app_name,
                AppDefaults.role == role,
            )
        ).scalar_one_or_none()
        return dict(defaults.default_limits or {}) if defaults else {}

    def check_user(self, email: str, user_id: Optional[str] = None) -> AccessCheck:
        email = normalize_email(email)
        with self._session() as db:
            user = self._find_user(db, email)
            if user is not None:
                role = user.role or DEFAULT_ROLE
                return AccessCheck(
                    allowed=user.status != STATUS_BLOCKED,
                    role=role,
                    limits=merge_limits(self._role_defaults(db, role), user.limits),
                )

            db.add(AppUser(
                user_id=user_id,
                email=email,
                app_name=self.app_name,
                role=DEFAULT_ROLE,
                status=STATUS_ALLOWED,
                notes="Auto-registered",
            ))
            logger.info(f"Registered new user {email}")
            return AccessCheck(
                allowed=True,
                role=DEFAULT_ROLE,
                limits=self._role_defaults(db, DEFAULT_ROLE),
            )

    def get_role(self, email: str) -> str:
        email = normalize_email(email)
        with self._session() as db:
            user = self._find_user(db, email)
            return (user.role if user else None) or DEFAULT_ROLE

    def get_limits(self, email: str) -> AccessCheck:
        email = normalize_email(email)
        with self._session() as db:
            user = self._find_user(db, email)
            role = (user.role if user else None) or DEFAULT_ROLE
            override = user.limits if user else None
            return AccessCheck(
                allowed=user is None or user.status != STATUS_BLOCKED,
                role=role,
                limits=merge_limits(self._role_defaults(db, role), override),
            )

    # ==================== Files ====================

    @staticmethod
    def _active(email: str):
        return (
            FileRecord.user_email == email,
            or_(FileRecord.is_deleted.is_(None), FileRecord.is_deleted.is_(False)),
        )

    def list_files(self, email: str) -> List[FileRecordData]:
        email = normalize_email(email)
        with self._session() as db:
            records = db.execute(
                select(FileRecord)
                .where(*self._active(email))
                .order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
            ).scalars().all()
            return [FileRecordData.from_model(r) for r in records]

    def count_files(self, email: str) -> int:
        email = normalize_email(email)
        with self._session() as db:
            return db.execute(
                select(func.count(FileRecord.id)).where(*self._active(email))
            ).scalar_one()

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
        email = normalize_email(email)
        if format not in FILE_FORMATS:
            raise MetadataStoreError(f"Unsupported file format: {format}")

        with self._session() as db:
            record = FileRecord(
                user_id=user_id,
                user_email=email,
                server_filename=server_filename,
                display_name=display_name,
                download_url=download_url,
                size_mb=size_mb,
                format=format,
            )
            db.add(record)
            db.flush()
            db.refresh(record)
            return FileRecordData.from_model(record)

    def _owned(self, db: Session, email: str, file_id: Any) -> Optional[FileRecord]:
        try:
            file_id = int(file_id)
        except (TypeError, ValueError):
            return None
        return db.execute(
            select(FileRecord).where(
                FileRecord.id == file_id,
                FileRecord.user_email == email,
            )
        ).scalar_one_or_none()

    def rename_file(self, email: str, file_id: Any, display_name: str) -> bool:
        email = normalize_email(email)
        with self._session() as db:
            record = self._owned(db, email, file_id)
            if record is None:
                return False
            record.display_name = display_name
            return True

    def delete_file(self, email: str, file_id: Any) -> bool:
        email = normalize_email(email)
        with self._session() as db:
            record = self._owned(db, email, file_id)
            if record is None:
                return False

            if self.remote_deleter and record.server_filename:
                try:
                    self.remote_deleter(record.server_filename)
                except Exception as e:
                    logger.warning(
                        f"Remote delete failed for {record.server_filename}: {e}")

            record.is_deleted = True
            record.deleted_at = utcnow()
            return True
