"""
Database connection and session management.

Provides database engine, session factory, and helper functions
for database operations.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from duckit.config.settings import get_settings
from duckit.catalog.models import AppDefaults, Base

# Null limit = unlimited
DEFAULT_ROLE_LIMITS = {
    "pro": ("Pro", {"max_files": 2, "max_file_size_mb": 75}),
    "admin": ("Admin", {"max_files": None, "max_file_size_mb": None}),
}

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(database_url: str, debug: bool = False) -> Engine:
    """
    Create a database engine for the given URL.

    In-memory SQLite shares one connection (StaticPool) so every session sees
    the same database; everything else uses a pre-pinged QueuePool.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=debug,
        )

    settings = get_settings()
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(
        database_url,
        connect_args=connect_args,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=debug,
    )


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(settings.database_url, settings.debug)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
        )
    return _session_factory


def reset_engine() -> None:
    """Dispose the engine (useful for testing)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def seed_role_defaults(db: Session, app_name: str) -> None:
    """Insert the default role limits that are missing for an application."""
    existing = set(db.execute(
        select(AppDefaults.role).where(AppDefaults.app_name == app_name)
    ).scalars())
    for role, (display_name, limits) in DEFAULT_ROLE_LIMITS.items():
        if role not in existing:
            db.add(AppDefaults(
                app_name=app_name,
                role=role,
                display_name=display_name,
                default_limits=dict(limits),
            ))


def init_db() -> None:
    """
    Initialize database by creating all tables and seeding role defaults.

    This should be called on application startup or handled by migrations.
    """
    Base.metadata.create_all(bind=get_engine())
    with get_db_session() as db:
        seed_role_defaults(db, get_settings().app_name)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function for FastAPI to get database sessions.

    Yields:
        Database session
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as db:
            db.query(FileRecord).all()
    """
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is successful, False otherwise
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
