"""Integration tests for the credential endpoints."""

from __future__ import annotations

import jwt
import pytest
from sqlalchemy import update
from taskauth.models.user import User

from tests.factories.user import UserFactory

LOGIN = "/api/v1/auth/login"
REFRESH = "/api/v1/auth/refresh"
LOGOUT = "/api/v1/auth/logout"
ME = "/api/v1/auth/me"
PASSWORD = "correct horse"


@pytest.fixture()
def user(session):
    """Persist an active user; committed so request teardown keeps it."""
    u = UserFactory(username="alice", email="alice@example.com", roles="ADMIN USER", password=PASSWORD)
    session.commit()
    # Load attributes now; request teardown detaches the instance
    session.refresh(u)
    return u


def _login(client, username="alice", password=PASSWORD):
    return client.post(LOGIN, json={"username": username, "password": password})


def _assert_no_store(resp):
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["Pragma"] == "no-cache"


def test_login_returns_token_pair(client, user):
    resp = _login(client)

    assert resp.status_code == 200
    _assert_no_store(resp)
    data = resp.get_json()["data"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 900
    assert data["scope"] == "ADMIN USER"
    assert data["user"] == {"id": str(user.id), "username": "alice", "roles": ["ADMIN", "USER"]}
    assert data["access_token"] and data["refresh_token"]


def test_access_token_carries_roles_as_authorities(client, user):
    token = _login(client).get_json()["data"]["access_token"]

    payload = jwt.decode(token, options={"verify_signature": False})

    assert payload["roles"] == ["ADMIN", "USER"]
    assert payload["authorities"] == ["ADMIN", "USER"]


def test_login_with_bad_password(client, user):
    resp = _login(client, password="wrong")

    assert resp.status_code == 401
    assert resp.mimetype == "application/problem+json"
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    _assert_no_store(resp)
    body = resp.get_json()
    assert body["code"] == "invalid_credentials"
    assert body["request_id"]


def test_unknown_user_gets_the_same_answer(client, user):
    resp = _login(client, username="mallory")

    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_credentials"


def test_sixth_login_is_rate_limited(client, user):
    for _ in range(5):
        assert _login(client, password="wrong").status_code == 401

    resp = _login(client)

    assert resp.status_code == 429
    retry_after = int(resp.headers["Retry-After"])
    assert 1 <= retry_after <= 60
    body = resp.get_json()
    assert body["code"] == "rate_limited"
    assert body["details"]["retry_after"] == retry_after


def test_refresh_rotation_and_reuse(client, user):
    first = _login(client).get_json()["data"]

    resp = client.post(REFRESH, json={"refresh_token": first["refresh_token"]})
    assert resp.status_code == 200
    _assert_no_store(resp)
    second = resp.get_json()["data"]
    assert second["refresh_token"] != first["refresh_token"]

    replay = client.post(REFRESH, json={"refresh_token": first["refresh_token"]})
    assert replay.status_code == 401
    assert replay.get_json()["code"] == "token_revoked"
    assert replay.headers["WWW-Authenticate"] == "Bearer"

    # The legitimate successor keeps working
    third = client.post(REFRESH, json={"refresh_token": second["refresh_token"]})
    assert third.status_code == 200


def test_refresh_with_unknown_token(client, user):
    resp = client.post(REFRESH, json={"refresh_token": "does-not-exist"})

    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def test_refresh_for_deactivated_user(client, user, session):
    pair = _login(client).get_json()["data"]
    session.execute(update(User).where(User.id == user.id).values(is_active=False))
    session.commit()

    resp = client.post(REFRESH, json={"refresh_token": pair["refresh_token"]})

    assert resp.status_code == 401
    assert resp.get_json()["code"] == "invalid_token"


def test_logout_is_idempotent(client, user):
    pair = _login(client).get_json()["data"]

    for _ in range(2):
        resp = client.post(LOGOUT, json={"refresh_token": pair["refresh_token"]})
        assert resp.status_code == 200
        assert resp.get_json() == {"data": {"status": "logged_out"}}
        _assert_no_store(resp)

    resp = client.post(REFRESH, json={"refresh_token": pair["refresh_token"]})
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "token_revoked"


def test_logout_with_unknown_token_succeeds(client, user):
    resp = client.post(LOGOUT, json={"refresh_token": "never-issued"})
    assert resp.status_code == 200


def test_me_returns_verified_claims(client, user):
    pair = _login(client).get_json()["data"]

    resp = client.get(ME, headers={"Authorization": f"Bearer {pair['access_token']}"})

    assert resp.status_code == 200
    claims = resp.get_json()["data"]
    assert claims["sub"] == str(user.id)
    assert claims["username"] == "alice"
    assert claims["roles"] == ["ADMIN", "USER"]
    assert claims["aud"] == ["web"]


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer not-a-jwt"}],
)
def test_me_rejects_missing_or_bad_tokens(client, headers):
    resp = client.get(ME, headers=headers)

    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert resp.get_json()["code"] == "invalid_token"


@pytest.mark.parametrize(
    "path, payload",
    [
        (LOGIN, {"username": "alice"}),
        (LOGIN, {"username": "", "password": "x"}),
        (REFRESH, {}),
        (LOGOUT, {"refresh_token": 12}),
    ],
)
def test_invalid_payloads_are_unprocessable(client, path, payload):
    resp = client.post(path, json=payload)

    assert resp.status_code == 422
    assert resp.get_json()["code"] == "validation_error"
    _assert_no_store(resp)


def test_request_id_is_echoed(client, user):
    resp = _login(client, password="wrong")
    assert resp.headers["X-Request-ID"] == resp.get_json()["request_id"]

    tagged = client.post(LOGIN, json={"username": "x", "password": "y"}, headers={"X-Request-ID": "abc-123"})
    assert tagged.headers["X-Request-ID"] == "abc-123"
