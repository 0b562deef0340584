"""
Unit tests for RedisRefreshTokenStore using fakeredis.

These tests exercise the main flows:
- add + get / find_by_hash
- rotate (success, reuse, expiry, unknown id)
- revoke (idempotent)
- connection failures surfacing as StoreUnavailableError

They use fakeredis.FakeRedis so they run entirely in-memory.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
import redis
from taskauth.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from taskauth.services._shared.errors import StoreUnavailableError
from taskauth.services._shared.ports import RefreshTokenRecord, RefreshTokenState

NOW = datetime(2025, 6, 1, 8, 30, tzinfo=UTC)


def _record(i: int, *, expires_in: int = 300, user: str = "u1") -> RefreshTokenRecord:
    """Helper to build predictable records for tests."""
    return RefreshTokenRecord(
        id=f"id-{i}",
        user_id=user,
        token_hash=f"hash-{i}",
        issued_at=NOW,
        expires_at=NOW + timedelta(seconds=expires_in),
        user_agent="ua/1",
        ip_address="1.2.3.4",
    )


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis):
    """Provide a RedisRefreshTokenStore backed by FakeRedis."""
    return RedisRefreshTokenStore(r=fake_redis)


def test_add_and_get(store):
    store.add(_record(1))

    by_id = store.get("id-1")
    by_hash = store.find_by_hash("hash-1")
    assert by_id == by_hash
    assert by_id.user_id == "u1"
    assert by_id.expires_at == NOW + timedelta(seconds=300)
    assert by_id.revoked_at is None
    assert by_id.user_agent == "ua/1"
    assert by_id.state(NOW) is RefreshTokenState.ACTIVE


def test_missing_records(store):
    assert store.get("nope") is None
    assert store.find_by_hash("nope") is None


def test_rotate_success(store):
    store.add(_record(1))

    assert store.rotate(current_id="id-1", successor=_record(2), now=NOW) is True

    old = store.get("id-1")
    new = store.find_by_hash("hash-2")
    assert old.revoked_at == NOW
    assert old.replaced_by_id == "id-2"
    assert old.successor_hash == "hash-2"
    assert old.state(NOW) is RefreshTokenState.ROTATED
    assert new.state(NOW) is RefreshTokenState.ACTIVE


def test_rotate_only_once(store):
    store.add(_record(1))
    assert store.rotate(current_id="id-1", successor=_record(2), now=NOW) is True
    assert store.rotate(current_id="id-1", successor=_record(3), now=NOW) is False
    assert store.get("id-3") is None


def test_rotate_expired_or_unknown(store):
    store.add(_record(1, expires_in=10))
    later = NOW + timedelta(seconds=10)

    assert store.rotate(current_id="id-1", successor=_record(2), now=later) is False
    assert store.get("id-1").revoked_at is None
    assert store.rotate(current_id="missing", successor=_record(3), now=NOW) is False


def test_revoke_is_idempotent(store):
    store.add(_record(1))

    assert store.revoke("id-1", now=NOW) is True
    assert store.revoke("id-1", now=NOW + timedelta(seconds=5)) is False
    assert store.get("id-1").revoked_at == NOW
    assert store.get("id-1").state(NOW) is RefreshTokenState.REVOKED
    assert store.revoke("missing", now=NOW) is False


def test_revoked_token_cannot_rotate(store):
    store.add(_record(1))
    store.revoke("id-1", now=NOW)
    assert store.rotate(current_id="id-1", successor=_record(2), now=NOW) is False


def test_connection_errors_become_store_unavailable():
    server = fakeredis.FakeServer()
    server.connected = False
    store = RedisRefreshTokenStore(r=fakeredis.FakeRedis(server=server))

    with pytest.raises(StoreUnavailableError) as info:
        store.get("id-1")
    assert info.value.backend == "redis"


def test_redis_error_type_is_preserved_as_cause(monkeypatch, store):
    def boom(*args, **kwargs):
        raise redis.ConnectionError("down")

    monkeypatch.setattr(store.r, "hgetall", boom)
    with pytest.raises(StoreUnavailableError) as info:
        store.get("id-1")
    assert isinstance(info.value.__cause__, redis.ConnectionError)
