"""
taskauth.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) the credential service depends
on. Concrete adapters (SQLAlchemy, Redis, PyJWT) live under ``taskauth.infra``;
in-memory implementations live next to each port for tests and local runs.

Modules
-------
- :mod:`token_provider`:
    :class:`~.AccessTokenIssuer` and :class:`~.AccessTokenVerifier`.
- :mod:`refresh_token_store`:
    :class:`~.RefreshTokenStore`, :class:`~.RefreshTokenRecord` and
    :class:`~.RefreshTokenState`.
- :mod:`rate_limiter`:
    :class:`~.FixedWindowRateLimiter` and :class:`~.RateDecision`.
- :mod:`user_directory`:
    :class:`~.UserDirectory` and :class:`~.UserRecord`.
"""

from __future__ import annotations

from .rate_limiter import FixedWindowRateLimiter, RateDecision, RateLimiter
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenState,
    RefreshTokenStore,
)
from .token_provider import AccessTokenIssuer, AccessTokenVerifier
from .user_directory import InMemoryUserDirectory, UserDirectory, UserRecord

__all__ = [
    "AccessTokenIssuer",
    "AccessTokenVerifier",
    "FixedWindowRateLimiter",
    "InMemoryRefreshTokenStore",
    "InMemoryUserDirectory",
    "RateDecision",
    "RateLimiter",
    "RefreshTokenRecord",
    "RefreshTokenState",
    "RefreshTokenStore",
    "UserDirectory",
    "UserRecord",
]
