"""
Unit tests for the SQL metadata store.
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from duckit.catalog.models import AppUser
from duckit.catalog.store import (
    FileRecordData,
    MetadataStoreError,
    SqlMetadataStore,
    merge_limits,
    normalize_email,
)

EMAIL = "user@example.com"


def _add(store, name="a_server.parquet", email=EMAIL, **kwargs):
    return store.add_file(
        email,
        server_filename=name,
        download_url=f"http://storage.test/files/{name}",
        format=kwargs.pop("format", "parquet"),
        **kwargs,
    )


class TestHelpers:
    def test_normalize_email(self):
        assert normalize_email("  User@Example.COM ") == "user@example.com"

    def test_normalize_empty_email_raises(self):
        with pytest.raises(MetadataStoreError):
            normalize_email("")

    def test_merge_limits(self):
        """Per-user overrides win over role defaults."""
        merged = merge_limits({"max_files": 2, "max_file_size_mb": 75}, {"max_files": 10})

        assert merged == {"max_files": 10, "max_file_size_mb": 75}


class TestUsers:
    """Tests for user.check, user.role and user.limits."""

    def test_check_registers_new_user(self, sql_store, session_factory):
        check = sql_store.check_user("New@Example.com", "u-1")

        assert check.allowed
        assert check.role == "pro"
        assert check.max_files == 2
        assert check.max_file_size_mb == 75
        with session_factory() as db:
            user = db.query(AppUser).one()
            assert user.email == "new@example.com"
            assert user.user_id == "u-1"
            assert user.notes == "Auto-registered"

    def test_check_existing_user_is_idempotent(self, sql_store, session_factory):
        sql_store.check_user(EMAIL)
        sql_store.check_user(EMAIL)

        with session_factory() as db:
            assert db.query(AppUser).count() == 1

    def test_blocked_user(self, sql_store, session_factory):
        with session_factory() as db:
            db.add(AppUser(email=EMAIL, app_name="duckit", status="blocked"))
            db.commit()

        assert not sql_store.check_user(EMAIL).allowed

    def test_admin_limits(self, sql_store, session_factory):
        with session_factory() as db:
            db.add(AppUser(email=EMAIL, app_name="duckit", role="admin"))
            db.commit()

        check = sql_store.check_user(EMAIL)

        assert check.role == "admin"
        assert check.max_files is None
        assert sql_store.get_role(EMAIL) == "admin"

    def test_user_limit_override(self, sql_store, session_factory):
        with session_factory() as db:
            db.add(AppUser(email=EMAIL, app_name="duckit", limits={"max_files": 50}))
            db.commit()

        limits = sql_store.get_limits(EMAIL)

        assert limits.max_files == 50
        assert limits.max_file_size_mb == 75

    def test_unknown_user_role_and_limits(self, sql_store, session_factory):
        """Role and limits lookups do not register the user."""
        assert sql_store.get_role(EMAIL) == "pro"
        assert sql_store.get_limits(EMAIL).max_files == 2
        with session_factory() as db:
            assert db.query(AppUser).count() == 0

    def test_users_are_scoped_by_app(self, session_factory):
        other = SqlMetadataStore(session_factory=session_factory, app_name="other")

        check = other.check_user(EMAIL)

        assert check.limits == {}


class TestFiles:
    """Tests for file record operations."""

    def test_add_and_list(self, sql_store):
        record = _add(sql_store, display_name="sales", size_mb=1.25, user_id="u-1")

        assert isinstance(record, FileRecordData)
        assert record.id is not None
        assert record.user_email == EMAIL
        assert record.display_name == "sales"
        assert record.size_mb == 1.25
        assert record.is_deleted is False
        assert record.created_at is not None

        files = sql_store.list_files(EMAIL)
        assert [f.id for f in files] == [record.id]

    def test_list_newest_first(self, sql_store):
        first = _add(sql_store, "one")
        second = _add(sql_store, "two")

        assert [f.id for f in sql_store.list_files(EMAIL)] == [second.id, first.id]

    def test_add_rejects_unknown_format(self, sql_store):
        with pytest.raises(MetadataStoreError, match="Unsupported file format"):
            _add(sql_store, format="csv")

    def test_count_excludes_deleted(self, sql_store):
        first = _add(sql_store, "one")
        _add(sql_store, "two", format="duckdb")

        sql_store.delete_file(EMAIL, first.id)

        assert sql_store.count_files(EMAIL) == 1
        assert [f.server_filename for f in sql_store.list_files(EMAIL)] == ["two"]

    def test_files_are_scoped_by_email(self, sql_store):
        _add(sql_store, "mine")
        _add(sql_store, "theirs", email="other@example.com")

        assert sql_store.count_files(EMAIL) == 1
        assert sql_store.count_files("OTHER@example.com") == 1

    def test_rename(self, sql_store):
        record = _add(sql_store, display_name="old")

        assert sql_store.rename_file(EMAIL, record.id, "new")
        assert sql_store.list_files(EMAIL)[0].display_name == "new"

    def test_rename_requires_ownership(self, sql_store):
        record = _add(sql_store)

        assert not sql_store.rename_file("other@example.com", record.id, "x")
        assert not sql_store.rename_file(EMAIL, "not-an-id", "x")

    def test_delete_soft_deletes_and_purges_remote(self, session_factory):
        deleter = Mock(return_value=True)
        store = SqlMetadataStore(
            session_factory=session_factory, app_name="duckit", remote_deleter=deleter)
        record = _add(store, "abc_server.zip", format="duckdb")

        assert store.delete_file(EMAIL, record.id)

        deleter.assert_called_once_with("abc_server.zip")
        assert store.list_files(EMAIL) == []

    def test_remote_failure_does_not_block_delete(self, session_factory):
        deleter = Mock(side_effect=RuntimeError("service down"))
        store = SqlMetadataStore(
            session_factory=session_factory, app_name="duckit", remote_deleter=deleter)
        record = _add(store)

        assert store.delete_file(EMAIL, record.id)
        assert store.count_files(EMAIL) == 0

    def test_delete_unknown_record(self, sql_store):
        assert not sql_store.delete_file(EMAIL, 999)


class TestErrors:
    def test_database_error_is_wrapped(self):
        """SQLAlchemy errors surface as MetadataStoreError."""
        session = Mock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("locked"))
        store = SqlMetadataStore(session_factory=Mock(return_value=session), app_name="duckit")

        with pytest.raises(MetadataStoreError):
            store.count_files(EMAIL)

        session.rollback.assert_called_once()
        session.close.assert_called_once()
