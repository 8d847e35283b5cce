import json
from datetime import datetime, timedelta, timezone

import pytest

from cmscrm.models import AuditLog, LoginActivity, Role, RolePage, UserStatusEnum


@pytest.fixture
def nav_pages(make_page):
    return [
        make_page("Dashboard", "/dashboard"),
        make_page("Users Management", "/users"),
        make_page("Profile", "/profile"),
    ]


def audit_actions(db):
    return [log.action for log in db.query(AuditLog).order_by(AuditLog.id).all()]


# ---- authentication ----

def test_missing_token_is_401(client):
    resp = client.get("/api/users/")
    assert resp.status_code == 401


def test_garbage_token_is_401(client):
    resp = client.get("/api/users/", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_inactive_user_is_401(client, make_user, auth_headers):
    user = make_user("ghost", roles=["admin"], status=UserStatusEnum.inactive)
    resp = client.get("/api/users/", headers=auth_headers(user))
    assert resp.status_code == 401


def test_login_records_activity_and_audit(client, db, make_user):
    make_user("dave", roles=["user"], password="hunter22")
    resp = client.post("/api/auth/login", json={"email": "dave@example.com", "password": "hunter22"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["access_token"]
    assert body["user"]["roles"] == ["user"]
    assert body["login_activity_id"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "dave"
    assert "user.login" in audit_actions(db)


def test_bad_password_is_401_and_recorded(client, db, make_user):
    make_user("erin", password="right-one")
    resp = client.post("/api/auth/login", json={"email": "erin@example.com", "password": "wrong-one"})
    assert resp.status_code == 401
    attempt = db.query(LoginActivity).one()
    assert attempt.success is False


def test_verify_returns_current_user(client, make_user, auth_headers):
    user = make_user("vera", roles=["user"])
    resp = client.get("/api/auth/verify", headers=auth_headers(user))
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["user"]["username"] == "vera"

    assert client.get("/api/auth/verify").status_code == 401


def test_login_history_is_own_and_newest_first(client, make_user, auth_headers):
    user = make_user("hank", roles=["user"], password="hunter22")
    other = make_user("hilda", password="secret123")
    client.post("/api/auth/login", json={"email": "hank@example.com", "password": "nope-nope"})
    client.post("/api/auth/login", json={"email": "hank@example.com", "password": "hunter22"})
    client.post("/api/auth/login", json={"email": "hilda@example.com", "password": "secret123"})

    resp = client.get("/api/auth/login-history", headers=auth_headers(user))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert body["pages"] == 1
    assert [a["success"] for a in body["activities"]] == [True, False]
    assert {a["email"] for a in body["activities"]} == {"hank@example.com"}

    paged = client.get("/api/auth/login-history", params={"page_size": 1, "page": 2}, headers=auth_headers(user)).json()
    assert paged["pages"] == 2
    assert [a["success"] for a in paged["activities"]] == [False]

    assert client.get("/api/auth/login-history", headers=auth_headers(other)).json()["total"] == 1


# ---- authorization gate ----

def test_forbidden_carries_required_permission(client, db, make_user, auth_headers):
    user = make_user("frank", roles=["user"])
    resp = client.delete("/api/users/999", headers=auth_headers(user))
    assert resp.status_code == 403
    assert resp.json()["required_permission"] == "delete_user"

    denied = db.query(AuditLog).filter(AuditLog.action == "access.denied").one()
    assert denied.actor_id == user.id
    assert json.loads(denied.details_json) == {"required_permission": "delete_user"}


def test_assigned_page_override_unlocks_user_crud(client, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("root", roles=["super_admin"])
    user = make_user("gina", roles=["user"])
    target = make_user("target")
    role = make_role("user")

    assert client.delete(f"/api/users/{target.id}", headers=auth_headers(user)).status_code == 403

    resp = client.post(
        "/api/roles/assign-pages",
        json={"role_id": role.id, "page_ids": [nav_pages[2].id]},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200

    assert client.delete(f"/api/users/{target.id}", headers=auth_headers(user)).status_code == 200
    assert client.get("/api/stats/dashboard", headers=auth_headers(user)).status_code == 403


def test_manager_permissions(client, make_user, auth_headers):
    manager = make_user("hank", roles=["manager"])
    headers = auth_headers(manager)
    assert client.get("/api/stats/dashboard", headers=headers).status_code == 200
    assert client.get("/api/users/", headers=headers).status_code == 200
    resp = client.post("/api/roles/", json={"name": "auditor"}, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["required_permission"] == "create_role"


def test_admin_cannot_delete_self(client, make_user, auth_headers):
    admin = make_user("ivy", roles=["admin"])
    resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
    assert resp.status_code == 400


# ---- roles and page order ----

def test_role_create_with_ordered_pages_and_tree(client, db, make_user, nav_pages, auth_headers):
    admin = make_user("jack", roles=["admin"])
    headers = auth_headers(admin)
    dashboard, users, profile = nav_pages

    resp = client.post("/api/roles/", json={
        "name": "support",
        "description": "Support desk",
        "pages_with_order": [
            {"page_id": dashboard.id, "display_order": 0},
            {"page_id": users.id, "parent_page_id": dashboard.id, "display_order": 0},
            {"page_id": profile.id, "display_order": 1},
        ],
    }, headers=headers)
    assert resp.status_code == 201
    role = resp.json()
    assert sorted(role["page_ids"]) == sorted(p.id for p in nav_pages)

    tree = client.get(f"/api/roles/{role['id']}/page-hierarchy", headers=headers).json()
    assert tree["role_name"] == "support"
    assert [n["page_id"] for n in tree["pages"]] == [dashboard.id, profile.id]
    assert [c["page_id"] for c in tree["pages"][0]["children"]] == [users.id]
    assert "role.create" in audit_actions(db)


def test_page_order_fallback_then_update(client, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("kim", roles=["admin"])
    headers = auth_headers(admin)
    role = make_role("support")
    dashboard, users, profile = nav_pages

    client.post(
        "/api/roles/assign-pages",
        json={"role_id": role.id, "page_ids": [profile.id, dashboard.id]},
        headers=headers,
    )
    order = client.get(f"/api/roles/{role.id}/page-order", headers=headers).json()["pages"]
    assert [(p["page_id"], p["display_order"], p["parent_page_id"]) for p in order] == [
        (dashboard.id, 0, None), (profile.id, 1, None),
    ]

    resp = client.put(f"/api/roles/{role.id}/page-order", json={"pages_with_order": [
        {"page_id": profile.id, "display_order": 0},
        {"page_id": users.id, "parent_page_id": profile.id, "display_order": 0},
    ]}, headers=headers)
    assert resp.status_code == 200

    pages = client.get(f"/api/roles/{role.id}/pages", headers=headers).json()
    assert {p["id"] for p in pages} == {profile.id, users.id}


def test_page_order_cycle_is_400(client, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("lee", roles=["admin"])
    role = make_role("support")
    a, b, _ = nav_pages
    resp = client.put(f"/api/roles/{role.id}/page-order", json={"pages_with_order": [
        {"page_id": a.id, "parent_page_id": b.id},
        {"page_id": b.id, "parent_page_id": a.id},
    ]}, headers=auth_headers(admin))
    assert resp.status_code == 400


def test_page_order_unknown_role_is_404(client, make_user, auth_headers):
    admin = make_user("mo", roles=["admin"])
    resp = client.get("/api/roles/12345/page-order", headers=auth_headers(admin))
    assert resp.status_code == 404


def test_role_delete_blocked_by_users(client, make_user, make_role, auth_headers):
    admin = make_user("nia", roles=["admin"])
    make_user("member", roles=["support"])
    role = make_role("support")
    resp = client.delete(f"/api/roles/{role.id}", headers=auth_headers(admin))
    assert resp.status_code == 409


def test_duplicate_role_name_is_409(client, make_user, make_role, auth_headers):
    admin = make_user("otto", roles=["admin"])
    make_role("support")
    resp = client.post("/api/roles/", json={"name": "support"}, headers=auth_headers(admin))
    assert resp.status_code == 409


def test_role_create_with_unknown_page_leaves_no_role(client, db, make_user, auth_headers):
    admin = make_user("olga", roles=["admin"])
    headers = auth_headers(admin)
    resp = client.post("/api/roles/", json={"name": "ghostrole", "pages": [9999]}, headers=headers)
    assert resp.status_code == 404
    assert db.query(Role).filter(Role.name == "ghostrole").count() == 0
    assert db.query(RolePage).count() == 0
    assert "role.create" not in audit_actions(db)

    retry = client.post("/api/roles/", json={"name": "ghostrole", "pages": []}, headers=headers)
    assert retry.status_code == 201


def test_role_create_with_cycle_leaves_no_role(client, db, make_user, nav_pages, auth_headers):
    admin = make_user("omar", roles=["admin"])
    a, b, _ = nav_pages
    resp = client.post("/api/roles/", json={"name": "loopy", "pages_with_order": [
        {"page_id": a.id, "parent_page_id": b.id},
        {"page_id": b.id, "parent_page_id": a.id},
    ]}, headers=auth_headers(admin))
    assert resp.status_code == 400
    assert db.query(Role).filter(Role.name == "loopy").count() == 0


def test_role_update_with_unknown_page_keeps_name_and_pages(client, db, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("orla", roles=["admin"])
    headers = auth_headers(admin)
    role = make_role("oldname")
    dashboard = nav_pages[0]
    client.post("/api/roles/assign-pages", json={"role_id": role.id, "page_ids": [dashboard.id]}, headers=headers)

    resp = client.put(f"/api/roles/{role.id}", json={"name": "newname", "pages": [9999]}, headers=headers)
    assert resp.status_code == 404

    current = client.get(f"/api/roles/{role.id}", headers=headers).json()
    assert current["name"] == "oldname"
    assert current["page_ids"] == [dashboard.id]
    assert db.query(Role).filter(Role.name == "newname").count() == 0


# ---- pages ----

def test_page_delete_blocked_by_role_link(client, db, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("pat", roles=["super_admin"])
    headers = auth_headers(admin)
    role = make_role("support")
    page = nav_pages[0]
    client.post("/api/roles/assign-pages", json={"role_id": role.id, "page_ids": [page.id]}, headers=headers)

    assert client.delete(f"/api/pages/{page.id}", headers=headers).status_code == 409
    assert client.delete(f"/api/pages/{nav_pages[1].id}", headers=headers).status_code == 200
    assert "page.delete" in audit_actions(db)


def test_my_pages_and_access(client, make_user, make_role, nav_pages, auth_headers):
    admin = make_user("quinn", roles=["admin"])
    user = make_user("rita", roles=["user"])
    role = make_role("user")
    dashboard, _, profile = nav_pages
    client.put(f"/api/roles/{role.id}/page-order", json={"pages_with_order": [
        {"page_id": profile.id, "display_order": 0},
        {"page_id": dashboard.id, "parent_page_id": profile.id, "display_order": 0},
    ]}, headers=auth_headers(admin))

    headers = auth_headers(user)
    mine = client.get("/api/pages/my-pages", headers=headers).json()
    assert [p["name"] for p in mine] == ["Dashboard", "Profile"]

    tree = client.get("/api/pages/my-pages-hierarchy", headers=headers).json()
    assert [n["page_id"] for n in tree] == [profile.id]
    assert [c["page_id"] for c in tree[0]["children"]] == [dashboard.id]

    assert client.get("/api/pages/access/profile", headers=headers).json()["has_access"] is True
    assert client.get("/api/pages/access/users", headers=headers).json()["has_access"] is False


def test_create_page_and_list(client, make_user, auth_headers):
    admin = make_user("sam", roles=["admin"])
    headers = auth_headers(admin)
    resp = client.post("/api/pages/", json={"name": "Docs", "url": "https://docs.example.com", "is_external": True}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["is_external"] is True

    listing = client.get("/api/pages/", params={"search": "docs"}, headers=headers).json()
    assert listing["total"] == 1


# ---- users ----

def test_user_create_update_roles(client, db, make_user, make_role, auth_headers):
    admin = make_user("tess", roles=["admin"])
    headers = auth_headers(admin)
    manager_role = make_role("manager")
    user_role = make_role("user")

    resp = client.post("/api/users/", json={
        "username": "uma", "email": "uma@example.com", "password": "secret123",
        "roles": [user_role.id],
    }, headers=headers)
    assert resp.status_code == 201
    created = resp.json()
    assert created["roles"] == ["user"]

    resp = client.put(f"/api/users/{created['id']}", json={"roles": [manager_role.id]}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["manager"]

    dup = client.post("/api/users/", json={
        "username": "uma2", "email": "uma@example.com", "password": "secret123",
    }, headers=headers)
    assert dup.status_code == 409
    assert audit_actions(db).count("user.create") == 1


# ---- stats and audit ----

def test_audit_log_listing(client, make_user, auth_headers):
    admin = make_user("vic", roles=["admin"])
    user = make_user("wes", roles=["user"])
    client.get("/api/stats/dashboard", headers=auth_headers(user))

    resp = client.get("/api/admin/audit", params={"action": "access.denied"}, headers=auth_headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["logs"][0]["resource_type"] == "stats"

    assert client.get("/api/admin/audit", headers=auth_headers(user)).status_code == 403


def test_active_users_window(client, db, make_user, auth_headers):
    manager = make_user("mona", roles=["manager"])
    recent = make_user("rita", password="secret123")
    stale = make_user("stan")
    make_user("fay", password="secret123")
    client.post("/api/auth/login", json={"email": "rita@example.com", "password": "secret123"})
    client.post("/api/auth/login", json={"email": "fay@example.com", "password": "wrong-pass"})
    two_hours_ago = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=2)
    db.add(LoginActivity(user_id=stale.id, email="stan@example.com", success=True, login_at=two_hours_ago))
    db.commit()

    resp = client.get("/api/stats/active-users", params={"minutes": 30}, headers=auth_headers(manager))
    assert resp.status_code == 200
    body = resp.json()
    assert body["time_window_minutes"] == 30
    assert body["count"] == 1
    assert [u["id"] for u in body["active_users"]] == [recent.id]

    wide = client.get("/api/stats/active-users", params={"minutes": 180}, headers=auth_headers(manager)).json()
    assert {u["username"] for u in wide["active_users"]} == {"rita", "stan"}

    user = make_user("ulla", roles=["user"])
    assert client.get("/api/stats/active-users", headers=auth_headers(user)).status_code == 403


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/admin/health").json()["database"] == "ok"
