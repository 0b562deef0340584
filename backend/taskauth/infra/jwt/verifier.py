"""Bearer-token verification across every loaded key.

Keys are tried in order with first-success semantics; the unverified ``kid``
header only reorders the attempt, it never selects a key on its own. The
signature check is followed by a fixed validator chain:

1. issuer (exact match)
2. audience (non-empty intersection)
3. timestamps (``exp``/``iat``/``nbf`` with clock skew)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import jwt

from taskauth.infra.jwt.key_store import ALGORITHM, KeyStore, SigningKey
from taskauth.services._shared.errors import TokenRejected

log = logging.getLogger(__name__)

# Rejection reasons (internal; clients always see ``invalid_token``)
MALFORMED_TOKEN = "malformed_token"
INVALID_SIGNATURE = "invalid_signature"
INVALID_ISSUER = "invalid_issuer"
INVALID_AUDIENCE = "invalid_audience"
TOKEN_EXPIRED = "token_expired"
TOKEN_NOT_YET_VALID = "token_not_yet_valid"

# Signature only; claim checks run in the chain below
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "require": [],
}


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """Validated access-token claims.

    ``key_id`` names the key that actually verified the signature, which may
    differ from the ``kid`` header of a tampered token.
    """

    subject: str
    username: str | None
    roles: tuple[str, ...]
    authorities: tuple[str, ...]
    issuer: str
    audience: tuple[str, ...]
    issued_at: datetime
    expires_at: datetime
    jti: str | None
    key_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sub": self.subject,
            "username": self.username,
            "roles": list(self.roles),
            "authorities": list(self.authorities),
            "iss": self.issuer,
            "aud": list(self.audience),
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
            "jti": self.jti,
            "kid": self.key_id,
        }


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list | tuple):
        return tuple(str(v) for v in value)
    raise TokenRejected(MALFORMED_TOKEN)


def _numeric(payload: dict[str, Any], claim: str) -> int:
    value = payload.get(claim)
    if value is None:
        raise TokenRejected(MALFORMED_TOKEN)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TokenRejected(MALFORMED_TOKEN)
    return int(value)


class TokenVerifier:
    """
    Verify RS256 access tokens against every key in a :class:`KeyStore`.

    :param key_store: Source of verification keys.
    :param issuer: Required ``iss`` value.
    :param audience: Accepted audiences; the token must list at least one.
    :param clock_skew_seconds: Tolerance for ``exp``, ``iat`` and ``nbf``.
    :param clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        *,
        key_store: KeyStore,
        issuer: str,
        audience: Sequence[str],
        clock_skew_seconds: int = 60,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._keys = key_store
        self._issuer = issuer
        self._audience = frozenset(audience)
        self._skew = int(clock_skew_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))

    def verify(self, token: str) -> AccessClaims:
        """Return validated claims or raise :class:`TokenRejected`."""
        try:
            return self._verify(token)
        except TokenRejected as exc:
            log.info(
                "Access token rejected",
                extra={"event": "access_token.rejected", "reason": exc.reason},
            )
            raise

    # ---- helpers ----

    def _ordered_keys(self, kid_hint: str | None) -> list[SigningKey]:
        keys = list(self._keys.all_verification_keys())
        if not kid_hint:
            return keys
        return [k for k in keys if k.key_id == kid_hint] + [
            k for k in keys if k.key_id != kid_hint
        ]

    def _check_signature(self, token: str) -> tuple[dict[str, Any], str]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.DecodeError as exc:
            raise TokenRejected(MALFORMED_TOKEN) from exc
        if header.get("alg") != ALGORITHM:
            raise TokenRejected(INVALID_SIGNATURE)
        kid = header.get("kid")
        kid_hint = kid if isinstance(kid, str) else None

        for key in self._ordered_keys(kid_hint):
            try:
                payload = jwt.decode(
                    token,
                    key.public_key,
                    algorithms=[ALGORITHM],
                    options=_DECODE_OPTIONS,
                )
            except jwt.InvalidSignatureError:
                continue
            except jwt.InvalidTokenError as exc:
                # Structural problems fail identically under every key
                raise TokenRejected(MALFORMED_TOKEN) from exc
            return payload, key.key_id
        raise TokenRejected(INVALID_SIGNATURE)

    def _verify(self, token: str) -> AccessClaims:
        if not token or not isinstance(token, str):
            raise TokenRejected(MALFORMED_TOKEN)

        payload, key_id = self._check_signature(token)

        # 1) issuer
        issuer = payload.get("iss")
        if issuer != self._issuer:
            raise TokenRejected(INVALID_ISSUER)

        # 2) audience
        audience = _as_tuple(payload.get("aud"))
        if not audience or self._audience.isdisjoint(audience):
            raise TokenRejected(INVALID_AUDIENCE)

        # 3) timestamps
        now = int(self._clock().timestamp())
        exp = _numeric(payload, "exp")
        iat = _numeric(payload, "iat")
        nbf = _numeric(payload, "nbf") if "nbf" in payload else None
        if now > exp + self._skew:
            raise TokenRejected(TOKEN_EXPIRED)
        if iat > now + self._skew or (nbf is not None and nbf > now + self._skew):
            raise TokenRejected(TOKEN_NOT_YET_VALID)

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenRejected(MALFORMED_TOKEN)

        username = payload.get("username")
        jti = payload.get("jti")
        return AccessClaims(
            subject=subject,
            username=username if isinstance(username, str) else None,
            roles=_as_tuple(payload.get("roles")),
            authorities=_as_tuple(payload.get("authorities")),
            issuer=issuer,
            audience=audience,
            issued_at=datetime.fromtimestamp(iat, tz=UTC),
            expires_at=datetime.fromtimestamp(exp, tz=UTC),
            jti=jti if isinstance(jti, str) else None,
            key_id=key_id,
        )
