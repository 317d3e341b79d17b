import pytest

from core.permissions import ADMIN_PERMISSIONS, AdminAccess, resolve_admin_access
from utils.admin_roles import AdminRoleStore, clean_roles


class DictRoleStore:
    def __init__(self, grants=None):
        self.grants = grants or {}

    def get(self, email):
        return set(self.grants.get(email, ()))


class BrokenRoleStore:
    def get(self, email):
        raise RuntimeError("store unavailable")


def test_unknown_principal_has_no_access():
    access = resolve_admin_access("someone@example.com", ["owner@example.com"], DictRoleStore())
    assert access.can_access is False
    for permission in ADMIN_PERMISSIONS:
        assert access.has_permission(permission) is False


def test_single_grant_limits_permissions():
    store = DictRoleStore({"staff@example.com": {"coupons"}})
    access = resolve_admin_access("Staff@Example.com", [], store)
    assert access.can_access is True
    assert access.has_permission("coupons") is True
    assert access.has_permission("orders") is False


def test_allow_list_implies_every_permission():
    access = resolve_admin_access("OWNER@example.com", ["owner@example.com"], DictRoleStore())
    assert access.is_owner
    assert all(access.has_permission(p) for p in ADMIN_PERMISSIONS)


def test_store_failure_resolves_to_no_permissions():
    access = resolve_admin_access("staff@example.com", [], BrokenRoleStore())
    assert access == AdminAccess(email="staff@example.com")
    assert access.can_access is False


def test_empty_email_has_no_access():
    assert resolve_admin_access("", ["owner@example.com"], DictRoleStore()).can_access is False


def test_clean_roles_drops_owner_and_unknown_tags():
    assert clean_roles(["Coupons", "owner", "bogus", "orders", "coupons"]) == ["coupons", "orders"]


def test_role_store_replaces_whole_set(db):
    store = AdminRoleStore(db)
    store.set("staff@example.com", ["coupons", "orders"])
    store.set("STAFF@example.com", ["products"])
    assert store.get("staff@example.com") == {"products"}
    assert store.delete("staff@example.com") is True
    assert store.get("staff@example.com") == set()
    assert store.delete("staff@example.com") is False


def test_role_store_requires_email(db):
    with pytest.raises(ValueError):
        AdminRoleStore(db).set("  ", ["orders"])
