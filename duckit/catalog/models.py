"""
Database models for the DuckIt metadata catalog.

This module defines the SQLAlchemy ORM models for registered users,
per-role default limits, and published file records.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (  # type: ignore
    String, DateTime, Text, Float, Boolean, Integer, JSON,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column  # type: ignore


def utcnow() -> datetime:
    """Naive UTC timestamp for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class AppUser(Base):
    """
    Registered identity for one application.

    Users are registered on first access with the default role. `limits`
    holds per-user overrides merged over the role defaults.
    """
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    app_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="pro")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="allowed")
    limits: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("email", "app_name", name="uq_app_users_email_app"),
        CheckConstraint("status IN ('allowed', 'blocked')",
                        name="check_app_user_status"),
    )

    def __repr__(self) -> str:
        return f"<AppUser(email={self.email}, role={self.role}, status={self.status})>"


class AppDefaults(Base):
    """
    Default limits for a role within an application.

    A null limit value means unlimited.
    """
    __tablename__ = "app_defaults"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    app_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    default_limits: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("app_name", "role", name="uq_app_defaults_app_role"),
    )


class FileRecord(Base):
    """
    Durable record of a published (non-temporary) artifact.

    Rows are soft-deleted so the publication history is kept.
    """
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_email: Mapped[str] = mapped_column(String(320), nullable=False)
    server_filename: Mapped[str] = mapped_column(String(512), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    download_url: Mapped[str] = mapped_column(Text, nullable=False)
    size_mb: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    format: Mapped[str] = mapped_column(String(20), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("format IN ('parquet', 'duckdb')", name="check_file_format"),
        Index("idx_files_user_email", "user_email"),
        Index("idx_files_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "server_filename": self.server_filename,
            "display_name": self.display_name,
            "download_url": self.download_url,
            "size_mb": self.size_mb,
            "format": self.format,
            "is_deleted": self.is_deleted,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, server_filename={self.server_filename})>"
