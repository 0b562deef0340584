from __future__ import annotations

import logging

from taskauth.infra.jwt.verifier import AccessClaims
from taskauth.services._shared.base import BaseService, ServiceContext
from taskauth.services._shared.errors import (
    INVALID_CREDENTIALS,
    INVALID_TOKEN,
    RATE_LIMITED,
    CredentialRejected,
)
from taskauth.services._shared.ports.rate_limiter import RateLimiter
from taskauth.services._shared.ports.token_provider import (
    AccessTokenIssuer,
    AccessTokenVerifier,
)
from taskauth.services._shared.ports.user_directory import (
    DUMMY_PASSWORD_HASH,
    UserDirectory,
    UserRecord,
)
from taskauth.services.credentials.dto import (
    ClientMeta,
    CredentialConfig,
    LoginIn,
    LogoutIn,
    RefreshIn,
    TokenPairOut,
    UserSummary,
)
from taskauth.services.credentials.ledger import RefreshTokenLedger

log = logging.getLogger(__name__)

LOGIN_ACTION = "login"
REFRESH_ACTION = "refresh"
UNKNOWN_OWNER = "unknown"


class CredentialService(BaseService):
    """
    Credential lifecycle service (login / refresh / logout / verify).

    Orchestration only: signing and verification live in the token adapters,
    refresh-token state in :class:`RefreshTokenLedger`, throttling in the
    rate limiter. Every refusal is raised as
    :class:`~taskauth.services._shared.errors.CredentialRejected`.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        issuer: AccessTokenIssuer,
        verifier: AccessTokenVerifier,
        ledger: RefreshTokenLedger,
        rate_limiter: RateLimiter,
        config: CredentialConfig | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param users: Port onto the user/password store.
        :param issuer: Access-token minting adapter.
        :param verifier: Access-token verification adapter.
        :param ledger: Refresh-token ledger.
        :param rate_limiter: Per-identity fixed-window limiter.
        :param config: Rate-limit thresholds.
        """
        super().__init__(ctx=ctx)
        self.users = users
        self.issuer = issuer
        self.verifier = verifier
        self.ledger = ledger
        self.limiter = rate_limiter
        self.cfg = config or CredentialConfig()

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn, meta: ClientMeta) -> TokenPairOut:
        """
        Authenticate credentials and issue a fresh token pair.

        :raises CredentialRejected: ``rate_limited`` or ``invalid_credentials``.
        """
        username = dto.username.strip()
        decision = self.limiter.allow(
            LOGIN_ACTION, f"{meta.ip}:{username}", self.cfg.login_max_per_minute
        )
        if not decision.allowed:
            log.warning(
                "Login rate limited",
                extra={"event": "auth.login_rate_limited", "client_ip": meta.ip},
            )
            raise CredentialRejected(RATE_LIMITED, retry_after=decision.retry_after)

        user = self.users.find_user_by_username(username)
        if user is None:
            # Same hashing cost whether or not the username exists
            self.users.verify_password(dto.password, DUMMY_PASSWORD_HASH)
            raise CredentialRejected(INVALID_CREDENTIALS)
        if not self.users.verify_password(dto.password, user.password_hash) or not user.is_active:
            raise CredentialRejected(INVALID_CREDENTIALS)

        access = self._issue_access(user)
        refresh = self.ledger.issue(user.id, meta)
        log.info("Login succeeded", extra={"event": "auth.login", "user_id": user.id})
        return self._pair(user, access, refresh)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn, meta: ClientMeta) -> TokenPairOut:
        """
        Rotate a refresh token and issue a new access token for its owner.

        :raises CredentialRejected: ``rate_limited``, ``invalid_token``,
            ``token_expired`` or ``token_revoked``.
        """
        owner = self.ledger.find_active_owner(dto.refresh_token) or UNKNOWN_OWNER
        decision = self.limiter.allow(
            REFRESH_ACTION, f"{meta.ip}:{owner}", self.cfg.refresh_max_per_minute
        )
        if not decision.allowed:
            log.warning(
                "Refresh rate limited",
                extra={"event": "auth.refresh_rate_limited", "client_ip": meta.ip},
            )
            raise CredentialRejected(RATE_LIMITED, retry_after=decision.retry_after)

        grant = self.ledger.rotate(dto.refresh_token, meta)

        user = self.users.get_user(grant.user_id)
        if user is None or not user.is_active:
            # Do not leave a usable successor behind for a vanished account
            self.ledger.revoke(grant.raw_token)
            raise CredentialRejected(INVALID_TOKEN)

        access = self._issue_access(user)
        return self._pair(user, access, grant.raw_token)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> None:
        """Revoke the refresh token. Always succeeds from the caller's view."""
        self.ledger.revoke(dto.refresh_token)

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify_access_token(self, token: str) -> AccessClaims:
        return self.verifier.verify(token)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _issue_access(self, user: UserRecord) -> str:
        # Roles double as authorities unless the directory supplies its own
        authorities = user.authorities or user.roles
        return self.issuer.issue(user.id, user.username, user.roles, authorities)

    def _pair(self, user: UserRecord, access: str, refresh: str) -> TokenPairOut:
        return TokenPairOut(
            access_token=access,
            refresh_token=refresh,
            expires_in=self.issuer.access_token_ttl_seconds(),
            user=UserSummary(id=user.id, username=user.username, roles=tuple(user.roles)),
        )
