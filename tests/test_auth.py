import asyncio
from datetime import datetime, timedelta, timezone

import jwt

from auth import COOKIE_NAME, JWT_ALGO, create_token, hash_password, verify_password
from config import settings


def test_password_hash_is_not_plaintext():
    hashed = hash_password("secret")
    assert hashed != "secret"
    assert verify_password("secret", hashed)
    assert not verify_password("Secret", hashed)


def test_seeded_admin_stores_only_hash(db, admin):
    user = asyncio.run(db["user"].find_one({"email": admin["email"]}))
    assert user["role"] == "admin"
    assert "password" not in user
    assert user["password_hash"] != admin["password"]


def test_login_sets_http_only_cookie(client, admin):
    resp = client.post("/auth/login", json=admin)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Login successful"
    assert body["user"]["email"] == admin["email"]
    assert body["user"]["role"] == "admin"
    assert set(body["user"]) == {"id", "email", "role"}

    cookie = resp.headers["set-cookie"]
    assert cookie.startswith(f"{COOKIE_NAME}=")
    assert "HttpOnly" in cookie
    assert "SameSite=strict" in cookie
    assert "; Secure" not in cookie
    assert "Max-Age=604800" in cookie


def test_login_cookie_is_secure_in_production(client, admin, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    resp = client.post("/auth/login", json=admin)
    cookie = resp.headers["set-cookie"]
    assert "; Secure" in cookie
    assert "SameSite=lax" in cookie


def test_login_wrong_password(client, admin):
    resp = client.post("/auth/login", json={"email": admin["email"], "password": "nope"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}
    assert "set-cookie" not in resp.headers


def test_login_unknown_email(client, admin):
    resp = client.post("/auth/login", json={"email": "who@store.com", "password": admin["password"]})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid credentials"


def test_login_missing_fields(client):
    resp = client.post("/auth/login", json={"email": "admin@store.com"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Email and password are required"


def test_verify_reports_session_state(client, admin):
    assert client.get("/auth/verify").json() == {"authenticated": False}
    client.post("/auth/login", json=admin)
    resp = client.get("/auth/verify")
    assert resp.status_code == 200
    assert resp.json() == {"authenticated": True}


def test_verify_accepts_bearer_header(client):
    token = create_token("507f1f77bcf86cd799439011")
    resp = client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert resp.json() == {"authenticated": True}


def test_verify_rejects_bad_tokens_without_error(client):
    expired = jwt.encode(
        {"sub": "507f1f77bcf86cd799439011", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.jwt_secret,
        algorithm=JWT_ALGO,
    )
    forged = jwt.encode({"sub": "507f1f77bcf86cd799439011"}, "other-secret", algorithm=JWT_ALGO)
    for token in (expired, forged, "garbage"):
        resp = client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json() == {"authenticated": False}


def test_logout_clears_cookie(admin_client):
    resp = admin_client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logout successful"}
    assert 'token=""' in resp.headers["set-cookie"]
    assert admin_client.get("/auth/verify").json() == {"authenticated": False}


def test_admin_routes_require_session(client):
    resp = client.get("/orders")
    assert resp.status_code == 401
    assert resp.json()["error"] == "Authentication required"


def test_admin_routes_reject_token_for_missing_user(client):
    token = create_token("507f1f77bcf86cd799439011")
    resp = client.get("/orders", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_admin_routes_reject_expired_token(client, admin):
    login = client.post("/auth/login", json=admin).json()
    client.cookies.clear()
    expired = jwt.encode(
        {"sub": login["user"]["id"], "exp": datetime.now(timezone.utc) - timedelta(seconds=1)},
        settings.jwt_secret,
        algorithm=JWT_ALGO,
    )
    resp = client.get("/orders", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


def test_seed_is_idempotent(client, db):
    first = client.post("/seed")
    assert first.status_code == 200
    assert first.json()["message"] == "Admin user created successfully"
    second = client.post("/seed")
    assert second.json()["message"] == "Admin user already exists"
    assert asyncio.run(db["user"].count_documents({})) == 1


def test_seed_requires_key_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "seed_secret", "let-me-in")
    assert client.post("/seed").status_code == 401
    assert client.post("/seed", headers={"x-seed-key": "wrong"}).status_code == 401
    resp = client.post("/seed", headers={"x-seed-key": "let-me-in"})
    assert resp.status_code == 200
    assert resp.json()["email"] == settings.admin_email


def test_login_with_missing_or_broken_hash_is_rejected(client, db):
    asyncio.run(db["user"].insert_one({"email": "nohash@store.com", "role": "admin"}))
    asyncio.run(db["user"].insert_one({"email": "badhash@store.com", "role": "admin", "password_hash": "plain"}))
    for email in ("nohash@store.com", "badhash@store.com"):
        resp = client.post("/auth/login", json={"email": email, "password": "anything"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid credentials"}


def test_verify_password_without_usable_hash():
    assert verify_password("secret", None) is False
    assert verify_password("secret", "") is False
    assert verify_password("secret", "not-a-bcrypt-hash") is False
