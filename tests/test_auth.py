"""Tests for the auth blueprint.

Covers:
- Login with valid/invalid credentials
- Deactivated accounts
- Missing fields
- Logout and /auth/me
"""

from coursepay.extensions import db
from coursepay.models.user import User


class TestLogin:
    """Tests for POST /auth/login."""

    def test_login_valid_credentials(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            json={"email": "ada@learners.ng", "password": "buyerpass123"},
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["id"] == seed_data["buyer_id"]
        assert data["is_admin"] is False

    def test_login_email_is_case_insensitive(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            json={"email": "  ADA@Learners.ng ", "password": "buyerpass123"},
        )
        assert resp.status_code == 200

    def test_login_accepts_form_data(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            data={"email": "admin@coursepay.local", "password": "admin123"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["is_admin"] is True

    def test_login_invalid_password(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            json={"email": "ada@learners.ng", "password": "wrong"},
        )
        assert resp.status_code == 401
        assert "Invalid email or password" in resp.get_json()["error"]

    def test_login_nonexistent_email(self, client, seed_data):
        resp = client.post(
            "/auth/login",
            json={"email": "nobody@learners.ng", "password": "whatever"},
        )
        assert resp.status_code == 401

    def test_login_deactivated_account(self, client, seed_data):
        user = db.session.get(User, seed_data["buyer_id"])
        user.is_active = False
        db.session.commit()

        resp = client.post(
            "/auth/login",
            json={"email": "ada@learners.ng", "password": "buyerpass123"},
        )
        assert resp.status_code == 403
        assert "deactivated" in resp.get_json()["error"]

    def test_login_missing_fields(self, client, seed_data):
        resp = client.post("/auth/login", json={"email": "ada@learners.ng"})
        assert resp.status_code == 400


class TestSession:
    """Tests for /auth/me and /auth/logout."""

    def test_me_requires_login(self, client, seed_data):
        resp = client.get("/auth/me")
        assert resp.status_code == 401

    def test_me_returns_current_user(self, client, seed_data, login_buyer):
        resp = client.get("/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["email"] == "ada@learners.ng"

    def test_logout(self, client, seed_data, login_buyer):
        resp = client.post("/auth/logout")
        assert resp.status_code == 200
        assert client.get("/auth/me").status_code == 401
