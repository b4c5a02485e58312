import pytest

from app_utils.constants import UserRole


def _register_payload(**overrides):
    payload = {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "password": "Secret@123",
    }
    payload.update(overrides)
    return payload


def test_register_defaults_to_citizen(client):
    response = client.post("/api/auth/register", json=_register_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "CITIZEN"
    assert body["email"] == "asha@example.com"
    assert "hashed_password" not in body


def test_register_accepts_role_case_insensitively(client):
    response = client.post("/api/auth/register", json=_register_payload(role="citizen"))
    assert response.status_code == 201
    assert response.json()["role"] == "CITIZEN"


@pytest.mark.parametrize("role", ["STAFF", "admin"])
def test_register_refuses_elevated_roles(client, role):
    response = client.post("/api/auth/register", json=_register_payload(role=role))

    assert response.status_code == 403
    assert response.json()["status"] == "error"
    login = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "Secret@123"})
    assert login.status_code == 401


def test_register_rejects_unknown_role(client):
    response = client.post("/api/auth/register", json=_register_payload(role="MAYOR"))
    assert response.status_code == 400
    assert response.json()["status"] == "error"


def test_register_rejects_duplicate_email(client):
    assert client.post("/api/auth/register", json=_register_payload()).status_code == 201

    response = client.post("/api/auth/register", json=_register_payload(name="Another Asha"))
    assert response.status_code == 400
    assert response.json()["message"] == "Email is already in use"


@pytest.mark.parametrize("overrides", [
    {"password": "weakpass"},
    {"email": "not-an-email"},
    {"phone": "12345"},
    {"name": "Al"},
])
def test_register_validation(client, overrides):
    response = client.post("/api/auth/register", json=_register_payload(**overrides))
    assert response.status_code == 422


def test_login_and_me(client):
    client.post("/api/auth/register", json=_register_payload())

    response = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "Secret@123"})
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "Bearer"
    assert body["user"]["email"] == "asha@example.com"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Asha Rao"


def test_login_with_wrong_password(client):
    client.post("/api/auth/register", json=_register_payload())

    response = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "Wrong@123"})
    assert response.status_code == 401


def test_protected_route_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_profile_update_and_change_password(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    response = client.put("/api/users/profile", json={"name": "Renamed User", "phone": "9123456780"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed User"

    wrong = client.post(
        "/api/users/change-password",
        json={"current_password": "Nope@123", "new_password": "Newer@123"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/api/users/change-password",
        json={"current_password": "Secret@123", "new_password": "Newer@123"},
        headers=headers,
    )
    assert ok.status_code == 200

    login = client.post("/api/auth/login", json={"email": user.email, "password": "Newer@123"})
    assert login.status_code == 200


@pytest.mark.parametrize("phone", ["12345", "98765-43210", "abcdefghij"])
def test_profile_update_validates_phone(client, make_user, auth_headers, phone):
    user = make_user()

    response = client.put(
        "/api/users/profile", json={"name": "Renamed User", "phone": phone}, headers=auth_headers(user)
    )
    assert response.status_code == 422


def test_health_and_ping(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/auth/ping").status_code == 200


def test_admin_routes_require_admin(client, make_user, auth_headers):
    staff = make_user(UserRole.STAFF)
    admin = make_user(UserRole.ADMIN)

    assert client.get("/api/admin/escalated", headers=auth_headers(staff)).status_code == 403
    assert client.get("/api/admin/escalated", headers=auth_headers(admin)).status_code == 200
