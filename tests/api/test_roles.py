"""
Tests for the role endpoints.
"""

from opsdesk.schemas.auth import Claims
from opsdesk.schemas.user import UserCreate
from opsdesk.services.user_service import UserService

ACTOR = Claims(user_id=999, email="actor@test.com", name="Actor")


def create_permission(client, headers, resource="asset", action="read"):
    response = client.post("/api/v1/permissions", json={
        "name": f"{resource}:{action}", "resource": resource, "action": action,
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


def create_role(client, headers, name="ops", permission_ids=None):
    return client.post("/api/v1/roles", json={
        "name": name, "permission_ids": permission_ids or [],
    }, headers=headers)


class TestRoleEndpoints:

    def test_create_role(self, client, admin_headers):
        p1 = create_permission(client, admin_headers)

        response = create_role(client, admin_headers, permission_ids=[p1["id"]])

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "ops"
        assert data["permission_ids"] == [p1["id"]]

    def test_duplicate_role_returns_409(self, client, admin_headers):
        create_role(client, admin_headers)
        response = create_role(client, admin_headers)

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_unknown_permission_returns_404(self, client, admin_headers):
        response = create_role(client, admin_headers, permission_ids=[9999])
        assert response.status_code == 404

    def test_get_role_details(self, client, admin_headers):
        p1 = create_permission(client, admin_headers)
        role = create_role(client, admin_headers, permission_ids=[p1["id"]]).json()

        response = client.get(f"/api/v1/roles/{role['id']}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user_count"] == 0
        assert [p["id"] for p in data["permissions"]] == [p1["id"]]

    def test_get_missing_role_returns_404(self, client, admin_headers):
        response = client.get("/api/v1/roles/9999", headers=admin_headers)
        assert response.status_code == 404

    def test_update_replaces_permissions(self, client, admin_headers):
        p1 = create_permission(client, admin_headers, action="read")
        p2 = create_permission(client, admin_headers, action="write")
        p3 = create_permission(client, admin_headers, action="delete")
        role = create_role(client, admin_headers, permission_ids=[p1["id"], p2["id"]]).json()

        response = client.put(f"/api/v1/roles/{role['id']}", json={
            "permission_ids": [p2["id"], p3["id"]],
        }, headers=admin_headers)

        assert response.status_code == 200
        assert set(response.json()["permission_ids"]) == {p2["id"], p3["id"]}

    def test_list_roles(self, client, admin_headers):
        create_role(client, admin_headers, name="ops")
        create_role(client, admin_headers, name="dev")

        response = client.get("/api/v1/roles?name=op", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["name"] == "ops"

    def test_grant_and_revoke_permissions(self, client, admin_headers):
        p1 = create_permission(client, admin_headers, action="read")
        p2 = create_permission(client, admin_headers, action="write")
        role = create_role(client, admin_headers).json()
        url = f"/api/v1/roles/{role['id']}/permissions"

        response = client.post(url, json={"permission_ids": [p1["id"], p2["id"]]},
                               headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["permission_ids"] == sorted([p1["id"], p2["id"]])

        response = client.request("DELETE", url, json={"permission_ids": [p1["id"]]},
                                  headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["permission_ids"] == [p2["id"]]

        response = client.get(url, headers=admin_headers)
        assert [p["id"] for p in response.json()] == [p2["id"]]

    def test_grant_empty_list_returns_400(self, client, admin_headers):
        role = create_role(client, admin_headers).json()

        response = client.post(f"/api/v1/roles/{role['id']}/permissions",
                               json={"permission_ids": []}, headers=admin_headers)

        assert response.status_code == 400


class TestRoleAccess:

    def test_requires_token(self, client, admin):
        response = client.get("/api/v1/roles")
        assert response.status_code == 401

    def test_invalid_token(self, client, admin):
        response = client.get("/api/v1/roles", headers={"Authorization": "Bearer junk"})
        assert response.status_code == 401

    def test_user_without_permission_gets_403(self, client, db_session, admin, headers_for):
        user = UserService(db_session).create_user(ACTOR, UserCreate(
            name="Plain", email="plain@test.com", password="password123",
        ))
        db_session.commit()

        response = client.get("/api/v1/roles", headers=headers_for(user))

        assert response.status_code == 403
        assert "role:read" in response.json()["detail"]


def test_ops_scenario(client, admin_headers):
    """Create role, assign it, blocked delete, unassign, delete, audited."""
    p1 = create_permission(client, admin_headers)

    response = create_role(client, admin_headers, permission_ids=[p1["id"]])
    assert response.status_code == 201
    ops = response.json()
    assert len(ops["permission_ids"]) == 1

    user = client.post("/api/v1/users", json={
        "name": "Operator", "email": "operator@test.com", "password": "password123",
    }, headers=admin_headers).json()

    response = client.post(f"/api/v1/users/{user['id']}/roles", json={
        "role_ids": [ops["id"]], "mode": "add",
    }, headers=admin_headers)
    assert response.status_code == 200
    details = client.get(f"/api/v1/roles/{ops['id']}", headers=admin_headers).json()
    assert details["user_count"] == 1

    response = client.delete(f"/api/v1/roles/{ops['id']}", headers=admin_headers)
    assert response.status_code == 409

    response = client.request("DELETE", f"/api/v1/users/{user['id']}/roles",
                              json={"role_ids": [ops["id"]]}, headers=admin_headers)
    assert response.status_code == 200

    response = client.delete(f"/api/v1/roles/{ops['id']}", headers=admin_headers)
    assert response.status_code == 204

    logs = client.get("/api/v1/audit-logs", params={
        "action": "DELETE", "resource": "ROLE", "resource_id": ops["id"],
    }, headers=admin_headers).json()
    assert logs["total"] == 1
    assert logs["items"][0]["details"]["deleted"]["name"] == "ops"
