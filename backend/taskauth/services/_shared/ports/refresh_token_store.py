from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import uuid4


class RefreshTokenState(str, Enum):
    """Lifecycle state of a refresh token, derived at read time."""

    ACTIVE = "active"
    ROTATED = "rotated"
    REVOKED = "revoked"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Immutable snapshot of one persisted refresh token.

    :ivar id: Opaque token identifier (32-char hex).
    :ivar user_id: Owning user id.
    :ivar token_hash: Keyed hash of the raw token; the raw value is never stored.
    :ivar issued_at: Issue time (UTC).
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked_at: Set once by rotation or logout.
    :ivar replaced_by_id: Successor id, set only by rotation.
    :ivar successor_hash: Successor hash, for chain tracing.
    :ivar user_agent: Issuing client user agent.
    :ivar ip_address: Issuing client address.
    """

    id: str
    user_id: str
    token_hash: str
    issued_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    replaced_by_id: str | None = None
    successor_hash: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None

    def state(self, now: datetime) -> RefreshTokenState:
        """Return the lifecycle state as observed at ``now``."""
        if self.revoked_at is not None:
            if self.replaced_by_id is not None:
                return RefreshTokenState.ROTATED
            return RefreshTokenState.REVOKED
        if now >= self.expires_at:
            return RefreshTokenState.EXPIRED
        return RefreshTokenState.ACTIVE


class RefreshTokenStore(Protocol):
    """
    Durable store for refresh-token records.

    Records are never deleted. ``rotate`` and ``revoke`` are conditional:
    they only succeed while the target is unrevoked, and exactly one
    concurrent caller can win a given transition.
    """

    def add(self, record: RefreshTokenRecord) -> None:
        """Persist a brand-new Active record."""

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """Look a record up by its token hash (read-only)."""

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        """Fetch a record by id (read-only)."""

    def rotate(
        self, *, current_id: str, successor: RefreshTokenRecord, now: datetime
    ) -> bool:
        """
        Atomically mark ``current_id`` as rotated and persist ``successor``.

        :returns: ``True`` when this call won the transition; ``False`` when the
            record was already revoked, rotated or expired.
        """

    def revoke(self, token_id: str, *, now: datetime) -> bool:
        """Set ``revoked_at`` without a successor. :returns: True if it changed."""

    def new_id(self) -> str:
        """Generate a new random token identifier."""
        return uuid4().hex


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh-token store with atomic rotation behavior.

    .. note::
       A single lock serializes writes; suitable for tests and single-process
       development only.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, RefreshTokenRecord] = {}
        self._by_hash: dict[str, str] = {}
        self._lock = threading.Lock()

    # -------------------------- API ----------------------------

    def add(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            if record.id in self._by_id or record.token_hash in self._by_hash:
                raise ValueError("Refresh token id or hash already stored")
            self._by_id[record.id] = record
            self._by_hash[record.token_hash] = record.id

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        token_id = self._by_hash.get(token_hash)
        return self._by_id.get(token_id) if token_id else None

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        return self._by_id.get(token_id)

    def rotate(
        self, *, current_id: str, successor: RefreshTokenRecord, now: datetime
    ) -> bool:
        with self._lock:
            current = self._by_id.get(current_id)
            if current is None or current.state(now) is not RefreshTokenState.ACTIVE:
                return False
            self._by_id[current_id] = replace(
                current,
                revoked_at=now,
                replaced_by_id=successor.id,
                successor_hash=successor.token_hash,
            )
            self._by_id[successor.id] = successor
            self._by_hash[successor.token_hash] = successor.id
            return True

    def revoke(self, token_id: str, *, now: datetime) -> bool:
        with self._lock:
            current = self._by_id.get(token_id)
            if current is None or current.revoked_at is not None:
                return False
            self._by_id[token_id] = replace(current, revoked_at=now)
            return True

    def __len__(self) -> int:
        return len(self._by_id)
