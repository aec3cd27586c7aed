"""Registration, login, token lifecycle and admin guards."""

from datetime import timedelta

import jwt
import pytest

import security
from config import settings
from errors import AuthenticationError

ADMIN_EMAIL = "admin@maisondarin.com"
CUSTOMER_EMAIL = "layla@example.com"
CUSTOMER_PASSWORD = "secret1"


def register(client, **overrides):
    payload = {
        "email": "Noor@Example.com",
        "password": "perfume1",
        "first_name": "Noor",
        "last_name": "Saleh",
    }
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


class TestPasswordRules:

    @pytest.mark.parametrize("password,role,expected", [
        ("abcdef", "customer", True),
        ("abcde", "customer", False),
        ("Admin123!", "admin", True),
        ("admin123!", "admin", False),
        ("Admin1234", "admin", False),
        ("Ad1!", "super_admin", False),
    ])
    def test_strength(self, password, role, expected):
        assert security.validate_password_strength(password, role) is expected


class TestRegisterAndLogin:

    def test_register_returns_user_and_tokens(self, client):
        resp = register(client)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["user"]["email"] == "noor@example.com"
        assert data["user"]["role"] == "customer"
        assert "password_hash" not in data["user"]
        assert data["tokens"]["token_type"] == "bearer"

    def test_duplicate_email(self, client):
        register(client)
        resp = register(client)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "USER_EXISTS"

    def test_weak_password(self, client):
        resp = register(client, password="123")
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert resp.json()["error"]["code"] == "WEAK_PASSWORD"

    def test_login(self, client, customer_user):
        resp = client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": CUSTOMER_PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["data"]["tokens"]["access_token"]

    def test_bad_credentials(self, client, customer_user):
        resp = client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": "wrong-pass"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_lockout_after_repeated_failures(self, client, customer_user, db):
        for _ in range(settings.auth.max_login_attempts):
            client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": "wrong-pass"})

        resp = client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": CUSTOMER_PASSWORD})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "ACCOUNT_LOCKED"
        assert "temporarily locked" in resp.json()["error"]["message"]
        assert db["user"].find_one({"email": CUSTOMER_EMAIL})["lock_until"] is not None

    def test_successful_login_resets_attempts(self, client, customer_user, db):
        client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": "wrong-pass"})
        client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": CUSTOMER_PASSWORD})
        user = db["user"].find_one({"email": CUSTOMER_EMAIL})
        assert user["login_attempts"] == 0
        assert user["last_login"] is not None


class TestTokens:

    def test_me_and_verify(self, client, customer_headers):
        resp = client.get("/api/auth/me", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == CUSTOMER_EMAIL

        resp = client.get("/api/auth/verify", headers=customer_headers)
        assert resp.json()["data"]["valid"] is True

    def test_missing_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "TOKEN_MISSING"

    def test_expired_token(self, client, customer_user):
        token = security._encode(customer_user, "access", timedelta(seconds=-10), settings.auth.secret, "sid")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_wrong_audience_is_rejected(self, customer_user):
        token = jwt.encode(
            {"sub": str(customer_user["_id"]), "type": "access", "iss": settings.auth.issuer, "aud": "someone-else"},
            settings.auth.secret,
            algorithm=settings.auth.algorithm,
        )
        with pytest.raises(AuthenticationError):
            security.decode_token(token, "access")

    def test_refresh_token_cannot_be_used_as_access(self, customer_user):
        tokens = security.create_tokens(customer_user)
        with pytest.raises(AuthenticationError):
            security.decode_token(tokens["refresh_token"], "access")

    def test_refresh(self, client, customer_user):
        tokens = security.create_tokens(customer_user)
        resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert resp.status_code == 200
        claims = security.decode_token(resp.json()["data"]["access_token"], "access")
        assert claims["sub"] == str(customer_user["_id"])

    def test_logout_blacklists_token(self, client, customer_headers):
        assert client.post("/api/auth/logout", headers=customer_headers).status_code == 200
        resp = client.get("/api/auth/me", headers=customer_headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Token has been invalidated"

    def test_change_password(self, client, customer_headers):
        resp = client.put(
            "/api/auth/password",
            json={"current_password": CUSTOMER_PASSWORD, "new_password": "newsecret"},
            headers=customer_headers,
        )
        assert resp.status_code == 200
        resp = client.post("/api/auth/login", json={"email": CUSTOMER_EMAIL, "password": "newsecret"})
        assert resp.status_code == 200


class TestAdminGuard:

    def test_customer_is_forbidden(self, client, customer_headers):
        resp = client.get("/api/orders", headers=customer_headers)
        assert resp.status_code == 403

    def test_admin_is_allowed(self, client, admin_headers):
        assert client.get("/api/orders", headers=admin_headers).status_code == 200

    def test_ensure_admin_is_idempotent(self, db, admin_user):
        assert security.ensure_admin(ADMIN_EMAIL, "Other123!")["_id"] == admin_user["_id"]
        assert security.ensure_admin(None, None) is None
        assert db["user"].count_documents({"role": "admin"}) == 1
