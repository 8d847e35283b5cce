import itertools

import pytest

from cmscrm.core.exceptions import (
    AuthenticationError, AuthorizationError, StoreUnavailableError,
)
from cmscrm.core.permissions import ROLE_PERMISSIONS, WILDCARD
from cmscrm.models import PageStatusEnum
from cmscrm.services.authorization import (
    AuthorizationEngine, Decision, Principal, PrincipalStatus,
    MISSING_PERMISSION, UNAUTHENTICATED,
)
from cmscrm.services.stores import AssignmentStore, IdentityStore
from cmscrm.services.hierarchy import HierarchyBuilder

ACTIONS = ["view", "create", "update", "delete", "export", "purge"]
RESOURCES = ["user", "role", "page", "stats", "activity", "data", "settings"]


class FakeStore:
    def __init__(self, has_pages=False, page_urls=(), error=None):
        self.has_pages = has_pages
        self.page_urls = set(page_urls)
        self.error = error
        self.calls = 0

    def roles_have_assigned_pages(self, role_names):
        self.calls += 1
        if self.error:
            raise self.error
        return self.has_pages

    def page_has_active_role_link(self, role_names, page_url):
        self.calls += 1
        if self.error:
            raise self.error
        return page_url in self.page_urls


def principal(*roles, status=PrincipalStatus.ACTIVE):
    return Principal(id=1, role_names=frozenset(roles), status=status)


@pytest.mark.parametrize("role", ["super_admin", "admin"])
def test_privileged_roles_allow_every_pair(role):
    store = FakeStore(has_pages=False)
    engine = AuthorizationEngine(store)
    for action, resource in itertools.product(ACTIONS, RESOURCES):
        assert engine.authorize(principal(role), action, resource).allowed
    assert store.calls == 0


def test_user_without_pages_cannot_delete_users():
    engine = AuthorizationEngine(FakeStore(has_pages=False))
    decision = engine.authorize(principal("user"), "delete", "user")
    assert decision == Decision.deny(MISSING_PERMISSION, "delete_user")
    assert not decision


def test_user_with_assigned_page_gets_crud_on_users_roles_pages():
    engine = AuthorizationEngine(FakeStore(has_pages=True))
    for action, resource in itertools.product(
        ["view", "create", "update", "delete"], ["user", "role", "page"]
    ):
        assert engine.authorize(principal("user"), action, resource).allowed


def test_assigned_pages_do_not_unlock_other_resources():
    engine = AuthorizationEngine(FakeStore(has_pages=True))
    assert not engine.authorize(principal("user"), "view", "stats").allowed
    assert not engine.authorize(principal("manager"), "export", "data").allowed


def test_table_permissions_skip_the_store():
    store = FakeStore(has_pages=False)
    engine = AuthorizationEngine(store)
    assert engine.authorize(principal("manager"), "update", "user").allowed
    assert engine.authorize(principal("manager"), "view", "activity").allowed
    assert engine.authorize(principal("user"), "view", "role").allowed
    assert store.calls == 0


def test_manager_denied_outside_table():
    engine = AuthorizationEngine(FakeStore(has_pages=False))
    decision = engine.authorize(principal("manager"), "delete", "role")
    assert decision.reason == MISSING_PERMISSION
    assert decision.required_permission == "delete_role"


def test_unknown_role_contributes_nothing_but_may_use_override():
    assert AuthorizationEngine.effective_permissions(principal("auditor")) == frozenset()
    assert not AuthorizationEngine(FakeStore()).authorize(principal("auditor"), "view", "user").allowed
    assert AuthorizationEngine(FakeStore(has_pages=True)).authorize(
        principal("auditor"), "view", "user"
    ).allowed


def test_effective_permissions_union_and_wildcard():
    perms = AuthorizationEngine.effective_permissions(principal("manager", "user"))
    assert perms == ROLE_PERMISSIONS["manager"] | ROLE_PERMISSIONS["user"]
    assert WILDCARD not in perms
    assert WILDCARD in AuthorizationEngine.effective_permissions(principal("super_admin"))


def test_admin_table_entries():
    assert ROLE_PERMISSIONS["admin"] >= {
        "create_user", "update_role", "delete_page", "view_stats", "view_activity", "export_data",
    }


def test_permission_table_is_immutable():
    with pytest.raises(TypeError):
        ROLE_PERMISSIONS["user"] = frozenset({"delete_user"})
    with pytest.raises(AttributeError):
        ROLE_PERMISSIONS["user"].add("delete_user")


@pytest.mark.parametrize("subject", [None, principal("super_admin", status=PrincipalStatus.INACTIVE)])
def test_missing_or_inactive_principal_is_unauthenticated(subject):
    engine = AuthorizationEngine(FakeStore(has_pages=True, page_urls={"/dashboard"}))
    assert engine.authorize(subject, "view", "user") == Decision.deny(UNAUTHENTICATED)
    assert engine.can_access_page(subject, "/dashboard") is False
    with pytest.raises(AuthenticationError):
        engine.require(subject, "view", "user")


def test_require_raises_with_required_permission():
    engine = AuthorizationEngine(FakeStore())
    with pytest.raises(AuthorizationError) as exc_info:
        engine.require(principal("user"), "create", "role")
    assert exc_info.value.required_permission == "create_role"
    assert "create_role" in exc_info.value.message


def test_require_returns_principal_on_allow():
    subject = principal("admin")
    assert AuthorizationEngine(FakeStore()).require(subject, "delete", "page") is subject


def test_store_failure_propagates():
    engine = AuthorizationEngine(FakeStore(error=StoreUnavailableError("down")))
    with pytest.raises(StoreUnavailableError):
        engine.authorize(principal("user"), "delete", "user")
    with pytest.raises(StoreUnavailableError):
        engine.can_access_page(principal("user"), "/dashboard")


def test_can_access_page_via_fake_store():
    engine = AuthorizationEngine(FakeStore(page_urls={"/profile"}))
    assert engine.can_access_page(principal("user"), "/profile")
    assert not engine.can_access_page(principal("user"), "/settings")
    assert engine.can_access_page(principal("super_admin"), "/settings")


# ---- against the SQL stores ----

def test_principal_from_identity_store(db, make_user):
    user = make_user("alice", roles=["manager", "user"])
    subject = IdentityStore(db).get_principal(user.id)
    assert subject.id == user.id
    assert subject.username == "alice"
    assert subject.role_names == frozenset({"manager", "user"})
    assert subject.is_active


def test_page_access_requires_active_assigned_page(db, make_user, make_role, make_page):
    make_user("bob", roles=["user"])
    role = make_role("user")
    profile = make_page("Profile", "/profile")
    archived = make_page("Archive", "/archive", status=PageStatusEnum.inactive)
    make_page("Settings", "/settings")
    HierarchyBuilder(AssignmentStore(db)).assign_pages(role.id, [profile.id, archived.id])

    engine = AuthorizationEngine(AssignmentStore(db))
    subject = principal("user")
    assert engine.can_access_page(subject, "/profile")
    assert not engine.can_access_page(subject, "/archive")
    assert not engine.can_access_page(subject, "/settings")


def test_override_ignores_inactive_pages(db, make_role, make_page):
    role = make_role("user")
    archived = make_page("Archive", "/archive", status=PageStatusEnum.inactive)
    store = AssignmentStore(db)
    HierarchyBuilder(store).assign_pages(role.id, [archived.id])

    engine = AuthorizationEngine(store)
    assert not engine.authorize(principal("user"), "delete", "user").allowed

    active = make_page("Help", "/help")
    HierarchyBuilder(store).assign_pages(role.id, [archived.id, active.id])
    assert engine.authorize(principal("user"), "delete", "user").allowed
