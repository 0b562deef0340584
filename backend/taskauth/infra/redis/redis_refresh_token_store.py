# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import redis  # type: ignore[import-untyped]

from taskauth.services._shared.errors import StoreUnavailableError
from taskauth.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenState,
    RefreshTokenStore,
)

_OPTIONAL_FIELDS = (
    "revoked_at",
    "replaced_by_id",
    "successor_hash",
    "user_agent",
    "ip_address",
)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh-token store with atomic rotation.

    Layout: one hash ``rt:{id}`` per token plus a ``rt:h:{hash} -> id`` index.
    Keys never expire, matching the never-deleted retention rule.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token_id: str) -> str:
        return f"rt:{token_id}"

    @staticmethod
    def _kh(token_hash: str) -> str:
        return f"rt:h:{token_hash}"

    @staticmethod
    def _ts(dt: datetime) -> str:
        return f"{dt.timestamp():.6f}"

    @staticmethod
    def _dt(raw: str) -> datetime:
        return datetime.fromtimestamp(float(raw), tz=UTC)

    def _encode(self, record: RefreshTokenRecord) -> dict[str, str]:
        mapping = {
            "user_id": record.user_id,
            "token_hash": record.token_hash,
            "issued_at": self._ts(record.issued_at),
            "expires_at": self._ts(record.expires_at),
        }
        if record.revoked_at is not None:
            mapping["revoked_at"] = self._ts(record.revoked_at)
        for name in ("replaced_by_id", "successor_hash", "user_agent", "ip_address"):
            value = getattr(record, name)
            if value is not None:
                mapping[name] = value
        return mapping

    def _decode(self, token_id: str, h: Mapping[bytes, bytes]) -> RefreshTokenRecord:
        def _b(key: str) -> str | None:
            value = h.get(key.encode())
            return value.decode() if value is not None else None

        optional = {name: _b(name) for name in _OPTIONAL_FIELDS}
        revoked_raw = optional.pop("revoked_at")
        return RefreshTokenRecord(
            id=token_id,
            user_id=_b("user_id") or "",
            token_hash=_b("token_hash") or "",
            issued_at=self._dt(_b("issued_at") or "0"),
            expires_at=self._dt(_b("expires_at") or "0"),
            revoked_at=self._dt(revoked_raw) if revoked_raw else None,
            **optional,
        )

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as exc:
            raise StoreUnavailableError("redis", type(exc).__name__) from exc

    # -------------------- API ------------------------

    def add(self, record: RefreshTokenRecord) -> None:
        with self._guard(), self.r.pipeline(transaction=True) as p:
            p.hset(self._k(record.id), mapping=self._encode(record))
            p.set(self._kh(record.token_hash), record.id)
            p.execute()

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._guard():
            token_id = self.r.get(self._kh(token_hash))
            if token_id is None:
                return None
            return self.get(token_id.decode())

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        with self._guard():
            h = self.r.hgetall(self._k(token_id))
        if not h:
            return None
        return self._decode(token_id, h)

    def rotate(
        self, *, current_id: str, successor: RefreshTokenRecord, now: datetime
    ) -> bool:
        """
        Atomically mark ``current_id`` rotated and create ``successor``.

        Uses WATCH/MULTI/EXEC (optimistic locking): if another client touches
        the watched hash between the read and EXEC, the loop re-reads and the
        now-revoked record makes this call return ``False``.
        """
        k_cur = self._k(current_id)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(k_cur)
                        h = p.hgetall(k_cur)
                        if not h:
                            p.unwatch()
                            return False
                        current = self._decode(current_id, h)
                        if current.state(now) is not RefreshTokenState.ACTIVE:
                            p.unwatch()
                            return False

                        p.multi()
                        p.hset(
                            k_cur,
                            mapping={
                                "revoked_at": self._ts(now),
                                "replaced_by_id": successor.id,
                                "successor_hash": successor.token_hash,
                            },
                        )
                        p.hset(self._k(successor.id), mapping=self._encode(successor))
                        p.set(self._kh(successor.token_hash), successor.id)
                        p.execute()
                    return True
                except redis.WatchError:
                    # Concurrent modification detected; retry loop
                    continue

    def revoke(self, token_id: str, *, now: datetime) -> bool:
        key = self._k(token_id)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        if not p.exists(key) or p.hexists(key, "revoked_at"):
                            p.unwatch()
                            return False
                        p.multi()
                        p.hset(key, "revoked_at", self._ts(now))
                        p.execute()
                    return True
                except redis.WatchError:
                    continue
