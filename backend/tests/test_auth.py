"""
Authentication and user administration tests.

Verifies:
- Bootstrap registration is open only while no user exists
- Login issues a token; bad credentials get one generic 401
- Tokens are checked against the live user row (role changes, deletion)
- Profile, password and admin user-management flows
"""

import logging

import pytest

from freshcount.extensions import db
from freshcount.models import User

from conftest import DEFAULT_PASSWORD, auth_headers, get_auth_token, make_user


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegistration:

    def test_first_user_can_register_without_token(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "Owner@FreshCount.test",
            "password": "bootstrap-pass",
            "name": "Owner",
            "role": "admin",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["email"] == "owner@freshcount.test"
        assert body["user"]["role"] == "admin"
        assert "password_hash" not in body["user"]

    def test_registration_closed_once_users_exist(self, client, admin_user):
        resp = client.post("/api/auth/register", json={
            "email": "new@freshcount.test",
            "password": DEFAULT_PASSWORD,
            "name": "New",
            "role": "staff",
        })
        assert resp.status_code == 401

    def test_staff_cannot_register_users(self, client, staff_headers):
        resp = client.post("/api/auth/register", json={
            "email": "new@freshcount.test",
            "password": DEFAULT_PASSWORD,
            "name": "New",
            "role": "staff",
        }, headers=staff_headers)
        assert resp.status_code == 403

    def test_admin_registers_staff(self, client, admin_headers):
        resp = client.post("/api/auth/register", json={
            "email": "new@freshcount.test",
            "password": DEFAULT_PASSWORD,
            "name": "New",
            "role": "staff",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert db.session.query(User).filter_by(email="new@freshcount.test").count() == 1

    def test_open_registration_flag(self, app, client, admin_user, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_OPEN_REGISTRATION", True)
        resp = client.post("/api/auth/register", json={
            "email": "walkin@freshcount.test",
            "password": DEFAULT_PASSWORD,
            "name": "Walk In",
            "role": "staff",
        })
        assert resp.status_code == 201

    def test_missing_fields(self, client, admin_headers):
        resp = client.post("/api/auth/register", json={"email": "x@freshcount.test"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_invalid_role(self, client, admin_headers):
        resp = client.post("/api/auth/register", json={
            "email": "x@freshcount.test",
            "password": DEFAULT_PASSWORD,
            "name": "X",
            "role": "manager",
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Role must be either admin or staff"

    def test_short_password(self, client, admin_headers):
        resp = client.post("/api/auth/register", json={
            "email": "x@freshcount.test",
            "password": "short",
            "name": "X",
            "role": "staff",
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert "at least 8 characters" in resp.get_json()["error"]

    def test_duplicate_email_conflicts(self, client, admin_headers, staff_user):
        resp = client.post("/api/auth/register", json={
            "email": staff_user.email.upper(),
            "password": DEFAULT_PASSWORD,
            "name": "Dup",
            "role": "staff",
        }, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "User already exists"


# =============================================================================
# LOGIN & TOKENS
# =============================================================================


class TestLogin:

    def test_login_returns_token_and_permissions(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"email": staff_user.email, "password": DEFAULT_PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["token"]
        assert body["user"]["id"] == staff_user.id
        assert "RECORD_STOCK_IN" in body["permissions"]
        assert "RECORD_STOCK_OUT" not in body["permissions"]

    def test_login_stamps_last_login(self, client, staff_user):
        assert staff_user.last_login_at is None
        get_auth_token(client, staff_user.email, DEFAULT_PASSWORD)
        db.session.refresh(staff_user)
        assert staff_user.last_login_at is not None

    def test_wrong_password_and_unknown_email_look_the_same(self, client, staff_user):
        wrong = client.post("/api/auth/login", json={"email": staff_user.email, "password": "nope-nope"})
        unknown = client.post("/api/auth/login", json={"email": "ghost@freshcount.test", "password": "nope-nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json() == {"error": "Invalid credentials"}

    def test_failed_login_is_logged(self, client, staff_user, caplog):
        with caplog.at_level(logging.WARNING):
            client.post("/api/auth/login", json={"email": staff_user.email, "password": "nope-nope"})
        assert any("Failed login" in r.getMessage() for r in caplog.records)

    def test_missing_credentials(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": ""})
        assert resp.status_code == 400

    def test_validate_returns_live_user(self, client, staff_user, staff_headers):
        resp = client.post("/api/auth/validate", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == staff_user.email

    def test_tampered_token_rejected(self, client, staff_headers):
        token = staff_headers["Authorization"].split(" ", 1)[1]
        resp = client.post("/api/auth/validate", headers=auth_headers(token[:-2] + "xx"))
        assert resp.status_code == 401

    def test_expired_token_rejected(self, app, client, staff_headers, monkeypatch):
        monkeypatch.setitem(app.config, "TOKEN_MAX_AGE_SECONDS", -1)
        resp = client.post("/api/auth/validate", headers=staff_headers)
        assert resp.status_code == 401

    def test_deleted_user_token_rejected(self, client, staff_user, staff_headers):
        db.session.delete(staff_user)
        db.session.commit()
        resp = client.post("/api/auth/validate", headers=staff_headers)
        assert resp.status_code == 401

    def test_demoted_admin_loses_admin_access_immediately(self, client, admin_user, admin_headers):
        assert client.get("/api/auth/users", headers=admin_headers).status_code == 200

        admin_user.role = "staff"
        db.session.commit()

        assert client.get("/api/auth/users", headers=admin_headers).status_code == 403


# =============================================================================
# SELF-SERVICE PROFILE
# =============================================================================


class TestProfile:

    def test_update_profile(self, client, staff_headers):
        resp = client.put("/api/auth/profile", json={
            "name": "Sam Staff",
            "phone": "+91 98765 43210",
            "dob": "1990-04-01",
        }, headers=staff_headers)
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["name"] == "Sam Staff"
        assert user["phone"] == "+91 98765 43210"

    def test_profile_cannot_change_role(self, client, staff_headers):
        resp = client.put("/api/auth/profile", json={"role": "admin"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_email_taken_by_another_user(self, client, staff_headers, admin_user):
        resp = client.put("/api/auth/profile", json={"email": admin_user.email}, headers=staff_headers)
        assert resp.status_code == 409

    def test_change_password(self, client, staff_user, staff_headers):
        resp = client.put("/api/auth/profile/password", json={
            "current_password": DEFAULT_PASSWORD,
            "new_password": "brand-new-pass",
        }, headers=staff_headers)
        assert resp.status_code == 200

        assert get_auth_token(client, staff_user.email, DEFAULT_PASSWORD) is None
        assert get_auth_token(client, staff_user.email, "brand-new-pass") is not None

    def test_change_password_wrong_current(self, client, staff_headers):
        resp = client.put("/api/auth/profile/password", json={
            "current_password": "not-my-password",
            "new_password": "brand-new-pass",
        }, headers=staff_headers)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Incorrect current password"


# =============================================================================
# ADMIN USER MANAGEMENT
# =============================================================================


class TestUserAdministration:

    def test_list_users(self, client, admin_headers, staff_user):
        resp = client.get("/api/auth/users", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 2
        assert all("password_hash" not in u for u in body["users"])

    def test_update_role(self, client, admin_headers, staff_user):
        resp = client.put(f"/api/auth/users/{staff_user.id}/role", json={"role": "admin"}, headers=admin_headers)
        assert resp.status_code == 200
        db.session.refresh(staff_user)
        assert staff_user.role == "admin"

    def test_update_role_invalid(self, client, admin_headers, staff_user):
        resp = client.put(f"/api/auth/users/{staff_user.id}/role", json={"role": "owner"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_role_missing_user(self, client, admin_headers):
        resp = client.put("/api/auth/users/9999/role", json={"role": "staff"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_admin_cannot_delete_self(self, client, admin_user, admin_headers):
        resp = client.delete(f"/api/auth/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot delete your own account"
        assert db.session.get(User, admin_user.id) is not None

    def test_admin_deletes_other_user(self, client, admin_headers, db_session):
        victim = make_user(db_session, "leaver@freshcount.test")
        victim_id = victim.id
        resp = client.delete(f"/api/auth/users/{victim_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(User, victim_id) is None

    def test_delete_missing_user(self, client, admin_headers):
        resp = client.delete("/api/auth/users/9999", headers=admin_headers)
        assert resp.status_code == 404


# =============================================================================
# NON-OBJECT JSON BODIES
# =============================================================================


NON_OBJECT_BODIES = [[1, 2], ["admin"], "admin", 42]


class TestNonObjectBodies:
    """A JSON array or scalar body is a 400, never an unhandled error."""

    @pytest.mark.parametrize("body", NON_OBJECT_BODIES)
    def test_login(self, client, staff_user, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}

    @pytest.mark.parametrize("body", NON_OBJECT_BODIES)
    def test_register(self, client, admin_headers, body):
        resp = client.post("/api/auth/register", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}
        assert db.session.query(User).count() == 1

    @pytest.mark.parametrize("body", NON_OBJECT_BODIES)
    def test_update_role(self, client, admin_headers, staff_user, body):
        resp = client.put(f"/api/auth/users/{staff_user.id}/role", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}
        db.session.refresh(staff_user)
        assert staff_user.role == "staff"

    @pytest.mark.parametrize("body", NON_OBJECT_BODIES)
    def test_change_password(self, client, staff_user, staff_headers, body):
        resp = client.put("/api/auth/profile/password", json=body, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}
        assert get_auth_token(client, staff_user.email, DEFAULT_PASSWORD)

    @pytest.mark.parametrize("body", NON_OBJECT_BODIES)
    def test_update_profile(self, client, staff_headers, body):
        resp = client.put("/api/auth/profile", json=body, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}
