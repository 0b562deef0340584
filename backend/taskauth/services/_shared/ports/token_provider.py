from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from taskauth.infra.jwt.verifier import AccessClaims


class AccessTokenIssuer(Protocol):
    """Port for minting signed access tokens."""

    def issue(
        self,
        subject_id: str,
        username: str,
        roles: Sequence[str],
        authorities: Sequence[str] = (),
    ) -> str: ...

    def access_token_ttl_seconds(self) -> int: ...


class AccessTokenVerifier(Protocol):
    """Port for validating bearer tokens.

    Implementations raise
    :class:`~taskauth.services._shared.errors.TokenRejected` on failure.
    """

    def verify(self, token: str) -> AccessClaims: ...
