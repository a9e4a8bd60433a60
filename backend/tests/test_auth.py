"""
Authentication and session tests.

Covers:
- Password strength and bcrypt hashing
- Login by username or email, bad credentials
- Bearer sessions: /me, logout revocation, idle timeout, deactivated users
"""

from datetime import timedelta

import pytest

from conftest import TEST_PASSWORD, get_auth_token
from retail_billing.models import SessionToken
from retail_billing.services import auth_service, session_service
from retail_billing.services.auth_service import PasswordValidationError, UserExistsError


@pytest.mark.parametrize("password", [
    "Short1!",
    "alllowercase1!",
    "ALLUPPERCASE1!",
    "NoDigitsHere!",
    "NoSpecial123",
])
def test_weak_passwords_rejected(password):
    with pytest.raises(PasswordValidationError):
        auth_service.validate_password_strength(password)


def test_hash_and_verify_password():
    hashed = auth_service.hash_password(TEST_PASSWORD)
    assert hashed != TEST_PASSWORD
    assert auth_service.verify_password(TEST_PASSWORD, hashed)
    assert not auth_service.verify_password("Wrong123!", hashed)
    assert not auth_service.verify_password(TEST_PASSWORD, "not-a-bcrypt-hash")


def test_create_user_rejects_duplicates(cashier):
    with pytest.raises(UserExistsError):
        auth_service.create_user("cashier", "other@retail.test", TEST_PASSWORD)
    with pytest.raises(ValueError):
        auth_service.create_user("someone", "someone@retail.test", TEST_PASSWORD, role="owner")


def test_login_by_username_and_email(client, cashier):
    assert get_auth_token(client, "cashier", TEST_PASSWORD)
    assert get_auth_token(client, "cashier@retail.test", TEST_PASSWORD)


def test_login_bad_credentials(client, cashier):
    resp = client.post("/api/auth/login", json={"username": "cashier", "password": "Wrong123!"})
    assert resp.status_code == 401
    assert resp.json["error"] == "Invalid credentials"


def test_login_missing_fields(client, db_session):
    resp = client.post("/api/auth/login", json={"username": "cashier"})
    assert resp.status_code == 400
    assert [e["field"] for e in resp.json["errors"]] == ["password"]


def test_login_inactive_user(client, cashier, db_session):
    cashier.is_active = False
    db_session.commit()
    assert get_auth_token(client, "cashier", TEST_PASSWORD) is None


def test_me_and_logout(client, auth_headers):
    resp = client.get("/api/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json["user"]["username"] == "cashier"
    assert "password_hash" not in resp.json["user"]

    assert client.post("/api/auth/logout", headers=auth_headers).status_code == 200
    assert client.get("/api/auth/me", headers=auth_headers).status_code == 401


def test_me_without_token(client, db_session):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json["code"] == "UNAUTHORIZED"

    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_idle_session_is_revoked(cashier, db_session):
    session, token = session_service.create_session(cashier.id)
    session.last_used_at = session.last_used_at - timedelta(hours=3)
    db_session.commit()

    assert session_service.validate_session(token) is None

    db_session.expire_all()
    stored = db_session.get(SessionToken, session.id)
    assert stored.is_revoked
    assert stored.revoked_reason == "Idle timeout"


def test_deactivated_user_session_is_revoked(cashier, db_session):
    session, token = session_service.create_session(cashier.id)
    assert session_service.validate_session(token).user.id == cashier.id

    cashier.is_active = False
    db_session.commit()

    assert session_service.validate_session(token) is None


def test_revoke_unknown_token(db_session):
    assert session_service.revoke_session("missing") is False
