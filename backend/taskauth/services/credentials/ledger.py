"""Refresh-token issuance, rotation and revocation with reuse detection.

Raw tokens are 32 random bytes (url-safe base64, no padding) handed to the
client exactly once. Only ``HMAC-SHA256(secret, raw)`` is stored, so a copy
of the store cannot be replayed. Each successful rotation consumes the
presented token; presenting it again is treated as theft.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from taskauth.services._shared.errors import (
    INVALID_TOKEN,
    TOKEN_EXPIRED,
    TOKEN_REVOKED,
    CredentialRejected,
)
from taskauth.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenState,
    RefreshTokenStore,
)
from taskauth.services.credentials.dto import ClientMeta, RefreshGrant

log = logging.getLogger(__name__)

RAW_TOKEN_BYTES = 32
DEFAULT_TTL_SECONDS = 14 * 24 * 3600


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class RefreshTokenLedger:
    """
    Stateful refresh-token lifecycle on top of a :class:`RefreshTokenStore`.

    :param store: Durable store performing conditional transitions.
    :param hmac_secret: Key for hashing raw tokens at rest.
    :param ttl_seconds: Lifetime of every issued token.
    :param cascade_on_reuse: When a rotated token is replayed, also revoke
        every still-active descendant in its rotation chain.
    :param clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        hmac_secret: bytes | str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        cascade_on_reuse: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not hmac_secret:
            raise ValueError("A non-empty HMAC secret is required")
        if ttl_seconds <= 0:
            raise ValueError("Refresh-token TTL must be positive")
        self.store = store
        self._secret = hmac_secret.encode() if isinstance(hmac_secret, str) else hmac_secret
        self._ttl = timedelta(seconds=int(ttl_seconds))
        self.cascade_on_reuse = cascade_on_reuse
        self._clock = clock or (lambda: datetime.now(UTC))

    # ---- helpers ----

    def hash_token(self, raw: str) -> str:
        digest = hmac.new(self._secret, raw.encode("utf-8"), hashlib.sha256).digest()
        return _b64url(digest)

    @staticmethod
    def _new_raw() -> str:
        return _b64url(secrets.token_bytes(RAW_TOKEN_BYTES))

    def _new_record(self, user_id: str, meta: ClientMeta, now: datetime) -> tuple[str, RefreshTokenRecord]:
        raw = self._new_raw()
        record = RefreshTokenRecord(
            id=self.store.new_id(),
            user_id=str(user_id),
            token_hash=self.hash_token(raw),
            issued_at=now,
            expires_at=now + self._ttl,
            user_agent=meta.user_agent[:255] if meta.user_agent else None,
            ip_address=meta.ip[:45] if meta.ip else None,
        )
        return raw, record

    def lookup(self, raw: str) -> RefreshTokenRecord | None:
        """Return the stored record for ``raw`` without changing it."""
        if not raw:
            return None
        return self.store.find_by_hash(self.hash_token(raw))

    # ---- API ----

    def issue(self, user_id: str, client_meta: ClientMeta) -> str:
        """Create an Active token for ``user_id`` and return its raw value."""
        raw, record = self._new_record(user_id, client_meta, self._clock())
        self.store.add(record)
        log.info(
            "Refresh token issued",
            extra={"event": "refresh_token.issued", "user_id": record.user_id, "token_id": record.id},
        )
        return raw

    def rotate(self, raw: str, client_meta: ClientMeta) -> RefreshGrant:
        """
        Consume ``raw`` and return its successor.

        :raises CredentialRejected: ``invalid_token`` (unknown), ``token_revoked``
            (already rotated or logged out, or a concurrent rotation won),
            ``token_expired`` (past its lifetime; left unchanged).
        """
        now = self._clock()
        record = self.lookup(raw)
        if record is None:
            raise CredentialRejected(INVALID_TOKEN)

        state = record.state(now)
        if state in (RefreshTokenState.ROTATED, RefreshTokenState.REVOKED):
            self._on_reuse(record, state, now)
            raise CredentialRejected(TOKEN_REVOKED)
        if state is RefreshTokenState.EXPIRED:
            log.info(
                "Expired refresh token presented",
                extra={"event": "refresh_token.expired", "user_id": record.user_id, "token_id": record.id},
            )
            raise CredentialRejected(TOKEN_EXPIRED)

        new_raw, successor = self._new_record(record.user_id, client_meta, now)
        if not self.store.rotate(current_id=record.id, successor=successor, now=now):
            latest = self.store.get(record.id)
            if latest is not None and latest.state(now) is RefreshTokenState.EXPIRED:
                raise CredentialRejected(TOKEN_EXPIRED)
            log.warning(
                "Concurrent rotation lost; treating as reuse",
                extra={
                    "event": "refresh_token.reuse_detected",
                    "user_id": record.user_id,
                    "token_id": record.id,
                    "reason": "concurrent_rotation",
                },
            )
            raise CredentialRejected(TOKEN_REVOKED)

        log.info(
            "Refresh token rotated",
            extra={"event": "refresh_token.rotated", "user_id": record.user_id, "token_id": successor.id},
        )
        return RefreshGrant(raw_token=new_raw, user_id=record.user_id, token_id=successor.id)

    def revoke(self, raw: str) -> bool:
        """
        Explicit logout. Idempotent: unknown, expired or already revoked
        tokens are a silent no-op.

        :returns: ``True`` when this call revoked an Active token.
        """
        now = self._clock()
        record = self.lookup(raw)
        if record is None or record.state(now) is not RefreshTokenState.ACTIVE:
            return False
        changed = self.store.revoke(record.id, now=now)
        if changed:
            log.info(
                "Refresh token revoked",
                extra={"event": "refresh_token.revoked", "user_id": record.user_id, "token_id": record.id},
            )
        return changed

    def find_active_owner(self, raw: str) -> str | None:
        """Return the owning user id when ``raw`` is Active, else ``None``."""
        record = self.lookup(raw)
        if record is None or record.state(self._clock()) is not RefreshTokenState.ACTIVE:
            return None
        return record.user_id

    # ---- reuse handling ----

    def _on_reuse(self, record: RefreshTokenRecord, state: RefreshTokenState, now: datetime) -> None:
        log.warning(
            "Refresh token reuse detected",
            extra={
                "event": "refresh_token.reuse_detected",
                "user_id": record.user_id,
                "token_id": record.id,
                "reason": state.value,
            },
        )
        if self.cascade_on_reuse and state is RefreshTokenState.ROTATED:
            revoked = self._revoke_descendants(record, now)
            if revoked:
                log.warning(
                    "Revoked %d descendant refresh token(s) after reuse",
                    revoked,
                    extra={"event": "refresh_token.chain_revoked", "user_id": record.user_id},
                )

    def _revoke_descendants(self, record: RefreshTokenRecord, now: datetime) -> int:
        revoked = 0
        seen = {record.id}
        next_id = record.replaced_by_id
        while next_id and next_id not in seen:
            seen.add(next_id)
            child = self.store.get(next_id)
            if child is None:
                break
            if child.revoked_at is None and self.store.revoke(child.id, now=now):
                revoked += 1
            next_id = child.replaced_by_id
        return revoked
