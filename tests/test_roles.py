from app.auth.permissions import (
    ADMINISTRATOR_ROLE,
    ADMINISTRATOR_ROLE_ID,
    ALL_PERMISSIONS,
    permissions_for_role,
)


def test_administrator_has_every_permission():
    assert permissions_for_role(ADMINISTRATOR_ROLE) == set(ALL_PERMISSIONS)
    assert permissions_for_role(None) == set()


def test_admin_email_gets_administrator_role(client, admin):
    me = client.get("/api/auth/me", headers=admin.headers).json()
    assert me["roleId"] == str(ADMINISTRATOR_ROLE_ID)

    roles = client.get("/api/roles", headers=admin.headers).json()
    builtin = [r for r in roles if r["isBuiltin"]]
    assert [r["name"] for r in builtin] == ["Administrator"]


def test_role_crud(client, admin):
    created = client.post(
        "/api/roles",
        json={"name": "Moderator", "permissionCodes": ["users.view", "users.block"]},
        headers=admin.headers,
    )
    assert created.status_code == 201
    role = created.json()
    assert sorted(role["permissionCodes"]) == ["users.block", "users.view"]

    updated = client.patch(f"/api/roles/{role['id']}", json={"description": "Keeps order"}, headers=admin.headers)
    assert updated.json()["description"] == "Keeps order"

    duplicate = client.post("/api/roles", json={"name": "Moderator"}, headers=admin.headers)
    assert duplicate.status_code == 409

    assert client.delete(f"/api/roles/{role['id']}", headers=admin.headers).status_code == 200
    assert client.get(f"/api/roles/{role['id']}", headers=admin.headers).status_code == 404


def test_builtin_role_is_read_only(client, admin):
    assert client.get(f"/api/roles/{ADMINISTRATOR_ROLE_ID}", headers=admin.headers).status_code == 200
    assert client.patch(f"/api/roles/{ADMINISTRATOR_ROLE_ID}", json={"name": "Root"}, headers=admin.headers).status_code == 403
    assert client.delete(f"/api/roles/{ADMINISTRATOR_ROLE_ID}", headers=admin.headers).status_code == 403
    assert client.post("/api/roles", json={"name": "Administrator"}, headers=admin.headers).status_code == 409


def test_unknown_permission_code_is_rejected(client, admin):
    response = client.post("/api/roles", json={"name": "Odd", "permissionCodes": ["rockets.launch"]}, headers=admin.headers)
    assert response.status_code == 400
    assert "rockets.launch" in response.json()["detail"]


def test_regular_user_cannot_manage_roles(client, register_user):
    user = register_user("Ursula")
    response = client.get("/api/roles", headers=user.headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions. Required: roles.view"


def test_assigned_role_grants_its_permissions(client, admin, register_user):
    user = register_user("Ursula")
    role = client.post("/api/roles", json={"name": "Viewer", "permissionCodes": ["roles.view"]}, headers=admin.headers).json()

    assert client.patch(f"/api/users/{user.id}/role", json={"roleId": role["id"]}, headers=admin.headers).status_code == 200
    assert client.get("/api/roles", headers=user.headers).status_code == 200
    assert client.post("/api/roles", json={"name": "Nope"}, headers=user.headers).status_code == 403


def test_unused_permission_codes_are_rejected(client, admin, register_user):
    # statistics.view has no route behind it and is not a valid code
    assert "statistics.view" not in ALL_PERMISSIONS
    refused = client.post(
        "/api/roles", json={"name": "Analyst", "permissionCodes": ["statistics.view"]}, headers=admin.headers
    )
    assert refused.status_code == 400

    moderator_role = client.post(
        "/api/roles", json={"name": "Moderator", "permissionCodes": ["reports.view"]}, headers=admin.headers
    ).json()
    moderator = register_user("Mia")
    client.patch(f"/api/users/{moderator.id}/role", json={"roleId": moderator_role["id"]}, headers=admin.headers)

    assert client.get("/api/reports", headers=moderator.headers).status_code == 200
