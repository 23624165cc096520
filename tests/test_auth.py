import pytest

from app.auth import services as auth_services
from app.auth.jwt_handler import decode_access_token
from app.auth.password import generate_password, hash_password, verify_password


def test_register_returns_token_and_default_avatar(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "Anna@Example.com", "password": "secret123", "firstName": "  Anna ", "lastName": "Petrova"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["user"]["email"] == "anna@example.com"
    assert body["user"]["firstName"] == "Anna"
    assert body["user"]["authProvider"] == "local"
    assert body["user"]["avatar"].startswith("https://ui-avatars.com/")

    claims = decode_access_token(body["accessToken"])
    assert claims["sub"] == body["user"]["id"]
    assert claims["email"] == "anna@example.com"


def test_register_duplicate_email_conflicts(client, register_user):
    register_user("Anna", email="anna@example.com")
    response = client.post(
        "/api/auth/register",
        json={"email": "anna@example.com", "password": "secret123", "firstName": "Anna"},
    )
    assert response.status_code == 409


def test_register_validates_payload(client):
    response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "1", "firstName": ""})
    assert response.status_code == 422


def test_login_and_me(client, register_user):
    user = register_user("Boris")
    response = client.post("/api/auth/login", json={"email": user.email, "password": user.password})
    assert response.status_code == 200
    token = response.json()["accessToken"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == user.id


def test_login_with_wrong_password_is_rejected(client, register_user):
    user = register_user("Boris")
    response = client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_password_reset_flow(client, register_user, monkeypatch):
    sent = []

    async def fake_send(email_to, name, reset_link):
        sent.append((email_to, reset_link))

    monkeypatch.setattr(auth_services, "send_password_reset_email", fake_send)
    user = register_user("Vera")

    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    assert len(sent) == 1
    email_to, link = sent[0]
    assert email_to == user.email
    assert link.startswith("http://frontend.test/reset-password?token=")
    token = link.split("token=", 1)[1]

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "brand-new-pass"})
    assert response.status_code == 200

    login = client.post("/api/auth/login", json={"email": user.email, "password": "brand-new-pass"})
    assert login.status_code == 200
    old = client.post("/api/auth/login", json={"email": user.email, "password": user.password})
    assert old.status_code == 401

    reuse = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "another-pass"})
    assert reuse.status_code == 400


def test_forgot_password_does_not_reveal_unknown_emails(client, register_user, monkeypatch):
    sent = []

    async def fake_send(email_to, name, reset_link):
        sent.append(email_to)

    monkeypatch.setattr(auth_services, "send_password_reset_email", fake_send)
    user = register_user("Vera")

    known = client.post("/api/auth/forgot-password", json={"email": user.email})
    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert sent == [user.email]


def test_forgot_password_survives_mail_failure(client, register_user, monkeypatch):
    async def broken_send(email_to, name, reset_link):
        raise ConnectionError("SMTP down")

    monkeypatch.setattr(auth_services, "send_password_reset_email", broken_send)
    user = register_user("Vera")
    response = client.post("/api/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200


def test_change_password(client, register_user):
    user = register_user("Gleb")
    wrong = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "nope", "newPassword": "changed123"},
        headers=user.headers,
    )
    assert wrong.status_code == 401

    response = client.post(
        "/api/auth/change-password",
        json={"currentPassword": user.password, "newPassword": "changed123"},
        headers=user.headers,
    )
    assert response.status_code == 200
    login = client.post("/api/auth/login", json={"email": user.email, "password": "changed123"})
    assert login.status_code == 200


def test_generate_password_endpoint(client):
    response = client.get("/api/auth/generate-password", params={"length": 20})
    assert response.status_code == 200
    assert len(response.json()["password"]) == 20
    assert client.get("/api/auth/generate-password", params={"length": 4}).status_code == 422


def test_password_helpers():
    hashed = hash_password("correct horse", rounds=4)
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("anything", None)

    password = generate_password(16)
    assert len(password) == 16
    with pytest.raises(ValueError):
        generate_password(7)
