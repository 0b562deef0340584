"""Credential component wiring for the Flask application.

Builds the key store, token adapters, refresh-token ledger and rate limiter
once per application and keeps them in ``app.extensions["credentials"]``.
Signing keys and the refresh HMAC secret are resolved at startup; a
production-like environment without them refuses to start.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

from dotenv import dotenv_values, find_dotenv
from flask import Flask, current_app

from taskauth.core.config import is_production_like, split_list
from taskauth.core.extensions import get_redis
from taskauth.infra.jwt.issuer import TokenIssuer
from taskauth.infra.jwt.key_store import KeySet, KeyStore, KeyStoreSettings
from taskauth.infra.jwt.verifier import TokenVerifier
from taskauth.services._shared.errors import ConfigurationError
from taskauth.services._shared.ports import (
    FixedWindowRateLimiter,
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    UserDirectory,
)
from taskauth.services.credentials import (
    CredentialConfig,
    CredentialService,
    RefreshTokenLedger,
)

log = logging.getLogger(__name__)

EXTENSION_KEY = "credentials"

# Settings a running process may pick up again from `.env`
KEY_LIST_SETTINGS = ("JWT_PEM_PUBLIC", "JWT_PEM_PRIVATE", "JWT_KEY_IDS")


@dataclass(slots=True)
class CredentialComponents:
    """Process-wide credential collaborators shared by all requests."""

    key_store: KeyStore
    issuer: TokenIssuer
    verifier: TokenVerifier
    ledger: RefreshTokenLedger
    rate_limiter: FixedWindowRateLimiter
    users: UserDirectory
    config: CredentialConfig

    def service(self) -> CredentialService:
        return CredentialService(
            users=self.users,
            issuer=self.issuer,
            verifier=self.verifier,
            ledger=self.ledger,
            rate_limiter=self.rate_limiter,
            config=self.config,
        )


def resolve_refresh_secret(config: Mapping[str, Any]) -> bytes:
    """Return the refresh-token HMAC key.

    :raises ConfigurationError: When unset in a production-like environment.
    """
    secret = config.get("REFRESH_HMAC_SECRET")
    if secret:
        return str(secret).encode("utf-8")
    if is_production_like(config):
        raise ConfigurationError("REFRESH_HMAC_SECRET must be set in a production environment")
    log.warning(
        "REFRESH_HMAC_SECRET not set; refresh tokens will not survive a restart",
        extra={"event": "refresh_token.ephemeral_secret"},
    )
    return secrets.token_bytes(32)


def build_refresh_store(config: Mapping[str, Any]) -> RefreshTokenStore:
    """Select the refresh-token store named by ``REFRESH_TOKEN_STORE``."""
    backend = str(config.get("REFRESH_TOKEN_STORE", "sql")).strip().lower()
    if backend == "sql":
        from taskauth.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore

        return SQLAlchemyRefreshTokenStore()
    if backend == "redis":
        from taskauth.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        return RedisRefreshTokenStore(get_redis())
    if backend == "memory":
        if is_production_like(config):
            raise ConfigurationError("The in-memory refresh-token store is not durable")
        return InMemoryRefreshTokenStore()
    raise ConfigurationError(f"Unknown REFRESH_TOKEN_STORE {backend!r}")


def build_components(
    config: Mapping[str, Any],
    *,
    users: UserDirectory | None = None,
    refresh_store: RefreshTokenStore | None = None,
) -> CredentialComponents:
    """Assemble every credential collaborator from a config mapping."""
    key_store = KeyStore.from_config(config)
    audience = list(config.get("JWT_AUDIENCE") or ["web"])
    issuer_name = str(config.get("JWT_ISSUER", "http://localhost:8080"))

    if users is None:
        from taskauth.infra.sqlalchemy.user_directory import SQLAlchemyUserDirectory

        users = SQLAlchemyUserDirectory()

    return CredentialComponents(
        key_store=key_store,
        issuer=TokenIssuer(
            key_store=key_store,
            issuer=issuer_name,
            audience=audience,
            ttl_seconds=int(config.get("ACCESS_TOKEN_TTL_SECONDS", 900)),
        ),
        verifier=TokenVerifier(
            key_store=key_store,
            issuer=issuer_name,
            audience=audience,
            clock_skew_seconds=int(config.get("JWT_CLOCK_SKEW_SECONDS", 60)),
        ),
        ledger=RefreshTokenLedger(
            store=refresh_store or build_refresh_store(config),
            hmac_secret=resolve_refresh_secret(config),
            ttl_seconds=int(config.get("REFRESH_TOKEN_TTL_SECONDS", 14 * 24 * 3600)),
            cascade_on_reuse=bool(config.get("REFRESH_REUSE_CASCADE", False)),
        ),
        rate_limiter=FixedWindowRateLimiter(),
        users=users,
        config=CredentialConfig.from_config(config),
    )


def init_app(app: Flask) -> None:
    """Build credential components; raises before the app serves anything."""
    components = build_components(app.config)
    app.extensions[EXTENSION_KEY] = components
    log.info(
        "Credential components ready",
        extra={"event": "keys.loaded", "kid": components.key_store.snapshot().current_key_id},
    )


def get_credentials() -> CredentialComponents:
    """Return the components bound to the current application."""
    components = current_app.extensions.get(EXTENSION_KEY)
    if components is None:
        raise RuntimeError("Credential components are not initialized.")
    return cast(CredentialComponents, components)


def get_credential_service() -> CredentialService:
    return get_credentials().service()


def reload_signing_keys(app: Flask, overrides: Mapping[str, str | None] | None = None) -> KeySet:
    """Re-read the key settings and swap the signing keys of a running app.

    Values come from ``overrides`` or, when omitted, from the ``.env`` file
    read again from disk; settings absent there keep their startup value.
    PEM paths are always re-read, so replacing key files on disk is enough.

    :raises ConfigurationError: When the new keys do not load. The previous
        key set stays active.
    """
    if overrides is None:
        path = find_dotenv(usecwd=True)
        overrides = dotenv_values(path) if path else {}

    updates: dict[str, Any] = {}
    for name in KEY_LIST_SETTINGS:
        raw = overrides.get(name)
        if raw is not None:
            updates[name] = split_list(raw)
    if "JWT_CURRENT_KID" in overrides:
        updates["JWT_CURRENT_KID"] = (overrides["JWT_CURRENT_KID"] or "").strip() or None

    config = {**app.config, **updates}
    components = cast(CredentialComponents, app.extensions[EXTENSION_KEY])
    key_set = components.key_store.reload(KeyStoreSettings.from_config(config))
    # Only commit the new values once they loaded
    app.config.update(updates)
    return key_set
