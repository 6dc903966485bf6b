"""
Authentication, sessions and staff management.
"""

from datetime import timedelta

import pytest

from partspos.extensions import db
from partspos.models import SessionToken
from partspos.services import auth_service, session_service
from partspos.services.auth_service import PasswordValidationError
from partspos.time_utils import utcnow
from partspos.validation import ConflictError, ValidationError

from conftest import PASSWORD, auth_headers, get_auth_token


# =============================================================================
# PASSWORDS
# =============================================================================


class TestPasswords:

    @pytest.mark.parametrize("password", ["Short1!", "alllower123!", "ALLUPPER123!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_is_bcrypt_and_verifies(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed.startswith("$2")
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)
        assert not auth_service.verify_password(PASSWORD, "not-a-hash")


# =============================================================================
# LOGIN / SESSIONS
# =============================================================================


class TestLogin:

    def test_login_by_username_or_email(self, client, staff_user):
        by_name = client.post("/api/auth/login", json={"username": "staff", "password": PASSWORD})
        assert by_name.status_code == 200
        assert by_name.json["user"]["role"] == "staff"

        by_email = client.post("/api/auth/login", json={"email": "staff@parts.test", "password": PASSWORD})
        assert by_email.status_code == 200
        assert staff_user.last_login_at is not None

    def test_bad_credentials(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "staff", "password": "Nope123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_token_stored_hashed(self, client, staff_user):
        token = get_auth_token(client, "staff")
        stored = db.session.query(SessionToken).filter_by(user_id=staff_user.id).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token

    def test_me_and_logout(self, client, staff_user):
        headers = auth_headers(get_auth_token(client, "staff"))

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["full_name"] == "Sam Staff"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_idle_session_expires(self, client, staff_user):
        token = get_auth_token(client, "staff")
        session = db.session.query(SessionToken).filter_by(user_id=staff_user.id).one()
        session.last_used_at = utcnow() - timedelta(hours=3)
        db.session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_absolute_timeout(self, client, staff_user):
        token = get_auth_token(client, "staff")
        session = db.session.query(SessionToken).filter_by(user_id=staff_user.id).one()
        session.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_inactive_user_cannot_login(self, client, staff_user):
        staff_user.is_active = False
        db.session.commit()
        assert client.post("/api/auth/login", json={"username": "staff", "password": PASSWORD}).status_code == 401


# =============================================================================
# STAFF MANAGEMENT
# =============================================================================


class TestStaffManagement:

    def test_staff_cannot_manage_staff(self, client, staff_headers):
        assert client.get("/api/auth/staff", headers=staff_headers).status_code == 403
        assert client.post("/api/auth/register", json={}, headers=staff_headers).status_code == 403

    def test_admin_registers_staff(self, client, admin_headers):
        resp = client.post("/api/auth/register", json={
            "username": "jdoe",
            "email": "JDoe@Parts.Test",
            "password": PASSWORD,
            "full_name": "Jane Doe",
        }, headers=admin_headers)

        assert resp.status_code == 201
        user = resp.json["user"]
        assert user["role"] == "staff"
        assert user["email"] == "jdoe@parts.test"
        assert user["first_name"] == "Jane" and user["last_name"] == "Doe"

        listed = client.get("/api/auth/staff", headers=admin_headers)
        assert {u["username"] for u in listed.json["staff"]} == {"admin", "jdoe"}

    def test_register_rejects_duplicates_and_weak_passwords(self, client, admin_headers, staff_user):
        dup = client.post("/api/auth/register", json={
            "username": "other", "email": "staff@parts.test", "password": PASSWORD,
            "first_name": "O", "last_name": "T",
        }, headers=admin_headers)
        assert dup.status_code == 409

        weak = client.post("/api/auth/register", json={
            "username": "weak", "email": "weak@parts.test", "password": "password",
            "first_name": "W", "last_name": "K",
        }, headers=admin_headers)
        assert weak.status_code == 400

    def test_update_staff(self, client, admin_headers, staff_user):
        resp = client.put(f"/api/auth/staff/{staff_user.id}", json={"phone": "555-0199", "role": "admin"},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["phone"] == "555-0199"
        assert resp.json["user"]["role"] == "admin"

    def test_deactivate_revokes_sessions(self, client, admin_headers, staff_user):
        staff_token = get_auth_token(client, "staff")

        resp = client.delete(f"/api/auth/staff/{staff_user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert staff_user.is_active is False
        assert client.get("/api/auth/me", headers=auth_headers(staff_token)).status_code == 401

    def test_cannot_deactivate_self(self, client, admin_headers, admin_user):
        assert client.delete(f"/api/auth/staff/{admin_user.id}", headers=admin_headers).status_code == 400
        assert client.put(f"/api/auth/users/{admin_user.id}/toggle-status", headers=admin_headers).status_code == 400

    def test_toggle_status(self, client, admin_headers, staff_user):
        off = client.put(f"/api/auth/users/{staff_user.id}/toggle-status", headers=admin_headers)
        assert off.json["user"]["is_active"] is False
        on = client.put(f"/api/auth/users/{staff_user.id}/toggle-status", headers=admin_headers)
        assert on.json["user"]["is_active"] is True

    def test_unknown_staff_is_404(self, client, admin_headers):
        assert client.put("/api/auth/staff/9999", json={"phone": "1"}, headers=admin_headers).status_code == 404

    def test_user_search_filters_and_paginates(self, client, admin_headers, staff_user):
        auth_service.create_user("mreyes", "maria@parts.test", PASSWORD, "Maria", "Reyes")
        retired = auth_service.create_user("oldhand", "old@parts.test", PASSWORD, "Olive", "Hand")
        retired.is_active = False
        db.session.commit()

        everyone = client.get("/api/auth/users", headers=admin_headers)
        assert everyone.status_code == 200
        assert {u["username"] for u in everyone.json["users"]} == {"admin", "staff", "mreyes"}
        assert everyone.json["pagination"]["total"] == 3

        staff_only = client.get("/api/auth/users?role=staff", headers=admin_headers)
        assert {u["username"] for u in staff_only.json["users"]} == {"staff", "mreyes"}

        by_name = client.get("/api/auth/users?search=REYES", headers=admin_headers)
        assert [u["username"] for u in by_name.json["users"]] == ["mreyes"]

        by_email = client.get("/api/auth/users?search=staff@", headers=admin_headers)
        assert [u["username"] for u in by_email.json["users"]] == ["staff"]

        paged = client.get("/api/auth/users?page=2&limit=2", headers=admin_headers)
        assert len(paged.json["users"]) == 1
        assert paged.json["pagination"]["has_prev"] is True
        assert paged.json["pagination"]["total_pages"] == 2

    def test_user_search_rejects_bad_input(self, client, admin_headers, staff_headers):
        assert client.get("/api/auth/users", headers=staff_headers).status_code == 403
        assert client.get("/api/auth/users?role=owner", headers=admin_headers).status_code == 400
        assert client.get("/api/auth/users?page=0", headers=admin_headers).status_code == 400

    def test_service_rejects_bad_role(self, app):
        with pytest.raises(ValidationError):
            auth_service.create_user("x", "x@parts.test", PASSWORD, "X", "Y", role="owner")

    def test_service_rejects_duplicate_username(self, staff_user):
        with pytest.raises(ConflictError):
            auth_service.create_user("staff", "new@parts.test", PASSWORD, "N", "U")


class TestPasswordChange:

    def test_change_password(self, client, staff_user):
        headers = auth_headers(get_auth_token(client, "staff"))
        resp = client.put("/api/auth/change-password", json={
            "current_password": PASSWORD,
            "new_password": "Newpass456!",
        }, headers=headers)
        assert resp.status_code == 200

        assert get_auth_token(client, "staff", "Newpass456!") is not None
        assert get_auth_token(client, "staff") is None

    def test_wrong_current_password(self, client, staff_headers):
        resp = client.put("/api/auth/change-password", json={
            "current_password": "Wrong123!",
            "new_password": "Newpass456!",
        }, headers=staff_headers)
        assert resp.status_code == 400
