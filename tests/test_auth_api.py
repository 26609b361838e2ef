from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from extensions import db
from models import AuditLog

ADMIN_PASSWORD = "Admin@Password123"


def test_login_with_username(client, admin_user) -> None:
    response = client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    body = response.get_json()
    assert response.status_code == 200
    assert body["role"] == "admin"
    assert body["user"]["email"] == "admin@example.com"
    assert body["token"]


def test_login_with_email(client, admin_user) -> None:
    response = client.post("/auth/login", json={"email": "ADMIN@example.com", "password": ADMIN_PASSWORD})
    assert response.status_code == 200


def test_failed_login_is_audited(client, admin_user) -> None:
    response = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401
    assert response.get_json()["message"] == "Invalid credentials"
    entry = AuditLog.query.filter_by(action_type="LOGIN_FAILED").one()
    assert entry.user_id == admin_user.id


def test_login_requires_identifier_and_password(client) -> None:
    assert client.post("/auth/login", json={"password": "x"}).status_code == 400
    assert client.post("/auth/login", json={"username": "admin"}).status_code == 400


def test_inactive_user_cannot_login(client, employee) -> None:
    employee.user.is_active = False
    db.session.commit()
    response = client.post("/auth/login", json={"username": "sam", "password": "Staff@Pass123"})
    assert response.status_code == 403


def test_verify_token(client, auth_headers) -> None:
    valid = client.post("/auth/verify-token", headers=auth_headers)
    assert valid.status_code == 200
    assert valid.get_json()["valid"] is True

    invalid = client.post("/auth/verify-token", headers={"Authorization": "Bearer not-a-token"})
    assert invalid.status_code == 401
    assert invalid.get_json()["valid"] is False

    assert client.post("/auth/verify-token").status_code == 401


def test_expired_token_is_rejected(app, client, admin_user) -> None:
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": admin_user.id, "iat": past, "exp": past + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/auth/me", headers=headers).status_code == 401
    assert client.post("/auth/verify-token", headers=headers).get_json()["message"] == "Token has expired"


def test_me_returns_profile(client, auth_headers, employee_headers, employee) -> None:
    admin = client.get("/auth/me", headers=auth_headers).get_json()["user"]
    assert admin["username"] == "admin"
    assert "employee" not in admin

    staff = client.get("/auth/me", headers=employee_headers).get_json()["user"]
    assert staff["role"] == "employee"
    assert staff["employee"]["id"] == employee.id


def test_me_requires_token(client) -> None:
    assert client.get("/auth/me").status_code == 401


def test_each_request_authenticates_its_own_token(client, auth_headers, employee_headers) -> None:
    roles = [
        client.get("/auth/me", headers=headers).get_json()["user"]["role"]
        for headers in (auth_headers, employee_headers, auth_headers, employee_headers)
    ]
    assert roles == ["admin", "employee", "admin", "employee"]
    assert client.get("/auth/me").status_code == 401
