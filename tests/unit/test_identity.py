"""
Unit tests for identities and storage tiers.
"""

from unittest.mock import Mock

import pytest

from duckit.catalog.store import AccessCheck, MetadataStoreError
from duckit.publish.identity import (
    Identity,
    Role,
    StorageTier,
    entitled_tier,
    load_identity,
    resolve_tier,
)


class TestIdentity:
    """Tests for Identity properties."""

    def test_anonymous(self):
        identity = Identity.anonymous()

        assert not identity.is_authenticated
        assert not identity.can_persist
        assert identity.role_loaded

    def test_pending_identity_is_not_loaded(self):
        assert not Identity.pending("a@example.com").role_loaded

    def test_admin_requires_authentication(self):
        assert not Identity(role=Role.ADMIN).is_admin
        assert Identity(email="a@example.com", role=Role.ADMIN).is_admin

    def test_limits(self):
        identity = Identity(email="a@example.com", limits={"max_files": 2})

        assert identity.max_files == 2
        assert identity.max_file_size_mb is None

    def test_role_parse_defaults_to_pro(self):
        assert Role.parse("admin") == Role.ADMIN
        assert Role.parse("superuser") == Role.PRO
        assert Role.parse(None) == Role.PRO


class TestTiers:
    """Tests for tier entitlement and resolution."""

    @pytest.mark.parametrize("identity,expected", [
        (Identity(), StorageTier.TEMPORARY),
        (Identity(email="a@example.com", allowed=False), StorageTier.TEMPORARY),
        (Identity(email="a@example.com", allowed=True), StorageTier.PERSISTENT),
        (Identity(email="a@example.com", role=Role.ADMIN), StorageTier.PERMANENT),
    ])
    def test_entitled_tier(self, identity, expected):
        assert entitled_tier(identity) == expected

    def test_temporary_request_stays_temporary(self):
        admin = Identity(email="a@example.com", role=Role.ADMIN, allowed=True)

        assert resolve_tier(admin, StorageTier.TEMPORARY) == StorageTier.TEMPORARY

    def test_persistent_request_downgrades_for_blocked_user(self):
        blocked = Identity(email="a@example.com", allowed=False)

        assert resolve_tier(blocked, StorageTier.PERSISTENT) == StorageTier.TEMPORARY

    def test_request_accepts_wire_value(self):
        allowed = Identity(email="a@example.com", allowed=True)

        assert resolve_tier(allowed, "persistent") == StorageTier.PERSISTENT

    def test_tier_wire_values(self):
        assert [t.value for t in StorageTier] == ["temp", "persistent", "permanent"]


class TestLoadIdentity:
    """Tests for loading identities from the metadata store."""

    def test_no_email_is_anonymous(self):
        store = Mock()

        identity = load_identity(store, None)

        assert not identity.is_authenticated
        store.check_user.assert_not_called()

    def test_loads_role_and_limits(self):
        store = Mock()
        store.check_user.return_value = AccessCheck(
            allowed=True, role="admin", limits={"max_files": None})

        identity = load_identity(store, "a@example.com", "u1")

        store.check_user.assert_called_once_with("a@example.com", "u1")
        assert identity.role == Role.ADMIN
        assert identity.allowed
        assert identity.role_loaded
        assert identity.user_id == "u1"

    def test_lookup_failure_limits_to_temporary(self):
        """A failed lookup should give a loaded identity that cannot persist."""
        store = Mock()
        store.check_user.side_effect = MetadataStoreError("down")

        identity = load_identity(store, "a@example.com")

        assert identity.role_loaded
        assert not identity.can_persist
        assert entitled_tier(identity) == StorageTier.TEMPORARY

    def test_loads_from_sql_store(self, sql_store):
        identity = load_identity(sql_store, "New@Example.com")

        assert identity.allowed
        assert identity.role == Role.PRO
        assert identity.max_files == 2
