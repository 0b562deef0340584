from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class ClientMeta:
    """
    Request metadata recorded with refresh tokens and used for rate limiting.

    :param ip: Client address as seen after proxy handling.
    :type ip: str
    :param user_agent: ``User-Agent`` header, if any.
    :type user_agent: str | None
    """

    ip: str = "unknown"
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param username: Login handle.
    :type username: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque raw refresh token.
    :type refresh_token: str
    """

    refresh_token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class LogoutIn:
    refresh_token: str = field(repr=False)


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserSummary:
    id: str
    username: str
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO returned by login and refresh.

    :param access_token: Signed RS256 access token.
    :param refresh_token: Opaque refresh token, shown to the client once.
    :param expires_in: Access-token lifetime in seconds.
    :param user: Summary of the authenticated user.
    :param token_type: Always ``"bearer"``.
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_in: int
    user: UserSummary
    token_type: str = "bearer"

    @property
    def scope(self) -> str:
        return " ".join(self.user.roles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
            "user": {
                "id": self.user.id,
                "username": self.user.username,
                "roles": list(self.user.roles),
            },
        }


@dataclass(frozen=True, slots=True)
class RefreshGrant:
    """
    Result of a successful rotation.

    :param raw_token: The successor raw token.
    :param user_id: Owner of both the consumed and the new token.
    :param token_id: Id of the successor record.
    """

    raw_token: str = field(repr=False)
    user_id: str
    token_id: str


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class CredentialConfig:
    """
    Limits applied by :class:`~taskauth.services.credentials.service.CredentialService`.

    :param login_max_per_minute: Login attempts per ``ip:username`` per window.
    :param refresh_max_per_minute: Refresh attempts per ``ip:owner`` per window.
    """

    login_max_per_minute: int = 5
    refresh_max_per_minute: int = 20

    @classmethod
    def from_config(cls, config: Any) -> CredentialConfig:
        return cls(
            login_max_per_minute=int(config.get("LOGIN_MAX_PER_MINUTE", 5)),
            refresh_max_per_minute=int(config.get("REFRESH_MAX_PER_MINUTE", 20)),
        )
