"""
Tests for the authentication endpoints.
"""

ADMIN_EMAIL = "admin@opsdesk.test"
ADMIN_PASSWORD = "admin-password"


def login(client, email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestLogin:

    def test_login_returns_token_and_user(self, client, admin):
        response = login(client)

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["email"] == ADMIN_EMAIL
        assert data["user"]["roles"][0]["name"] == "admin"

    def test_email_is_case_insensitive(self, client, admin):
        assert login(client, email="ADMIN@opsdesk.test").status_code == 200

    def test_wrong_password_returns_401(self, client, admin):
        response = login(client, password="wrong-password")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_token_from_login_works(self, client, admin):
        token = login(client).json()["access_token"]

        response = client.get("/api/v1/auth/me",
                              headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["id"] == admin.id

    def test_login_is_audited_with_client_meta(self, client, admin, admin_headers):
        login(client)

        logs = client.get("/api/v1/audit-logs", params={"action": "LOGIN"},
                          headers=admin_headers).json()

        assert logs["total"] == 1
        entry = logs["items"][0]
        assert entry["user_id"] == admin.id
        assert entry["ip_address"] == "testclient"
        assert entry["user_agent"] == "testclient"


class TestLogout:

    def test_logout_is_audited(self, client, admin, admin_headers):
        response = client.post("/api/v1/auth/logout", headers=admin_headers)
        assert response.status_code == 204

        logs = client.get("/api/v1/audit-logs", params={"action": "LOGOUT"},
                          headers=admin_headers).json()
        assert logs["total"] == 1

    def test_logout_requires_token(self, client):
        assert client.post("/api/v1/auth/logout").status_code == 401


def test_forwarded_for_header_is_recorded(client, admin, admin_headers):
    client.post("/api/v1/auth/login",
                json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
                headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

    logs = client.get("/api/v1/audit-logs", params={"action": "LOGIN"},
                      headers=admin_headers).json()
    assert logs["items"][0]["ip_address"] == "203.0.113.9"
