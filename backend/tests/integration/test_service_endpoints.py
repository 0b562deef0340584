"""Integration tests for health, key discovery and error envelopes."""

from __future__ import annotations


def test_health_reports_db_and_keys(client):
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["keys_loaded"] is True


def test_jwks_lists_public_keys_only(client, credentials):
    resp = client.get("/.well-known/jwks.json")

    assert resp.status_code == 200
    keys = resp.get_json()["keys"]
    assert [k["kid"] for k in keys] == list(credentials.key_store.snapshot().key_ids)
    assert all("d" not in k for k in keys)


def test_unknown_route_is_problem_json(client):
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    assert resp.get_json()["code"] == "not_found"


def test_cors_exposes_credential_headers(client):
    resp = client.get("/api/v1/health", headers={"Origin": "http://localhost:5173"})

    exposed = resp.headers.get("Access-Control-Expose-Headers", "")
    assert "Retry-After" in exposed
    assert "WWW-Authenticate" in exposed
