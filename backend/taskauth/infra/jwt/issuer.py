"""Access-token minting with the current signing key."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt

from taskauth.infra.jwt.key_store import KeyStore


class TokenIssuer:
    """
    Sign RS256 access tokens carrying identity and role claims.

    :param key_store: Source of the current signing key.
    :param issuer: Value of the ``iss`` claim.
    :param audience: Values of the ``aud`` claim.
    :param ttl_seconds: Lifetime added to ``iat`` to form ``exp``.
    :param clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        *,
        key_store: KeyStore,
        issuer: str,
        audience: Sequence[str],
        ttl_seconds: int = 900,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("Access-token TTL must be positive")
        self._keys = key_store
        self._issuer = issuer
        self._audience = list(audience)
        self._ttl = int(ttl_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))

    def access_token_ttl_seconds(self) -> int:
        return self._ttl

    def issue(
        self,
        subject_id: str,
        username: str,
        roles: Sequence[str],
        authorities: Sequence[str] = (),
    ) -> str:
        """Return a compact JWS for ``subject_id``.

        The ``kid`` header names the key that signed it, so verifiers can try
        that key first.
        """
        key = self._keys.current_signing_key()
        if key.private_key is None:
            raise RuntimeError(f"Signing key {key.key_id!r} has no private half")

        now = self._clock().replace(microsecond=0)
        claims = {
            "iss": self._issuer,
            "sub": str(subject_id),
            "aud": self._audience,
            "iat": now,
            "nbf": now,
            "exp": now + timedelta(seconds=self._ttl),
            "jti": uuid4().hex,
            "username": username,
            "roles": list(roles),
            "authorities": list(authorities),
        }
        return jwt.encode(
            claims,
            key.private_key,
            algorithm=key.algorithm,
            headers={"kid": key.key_id, "typ": "JWT"},
        )
