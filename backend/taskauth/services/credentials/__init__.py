from taskauth.services.credentials.dto import (
    ClientMeta,
    CredentialConfig,
    LoginIn,
    LogoutIn,
    RefreshGrant,
    RefreshIn,
    TokenPairOut,
    UserSummary,
)
from taskauth.services.credentials.ledger import RefreshTokenLedger
from taskauth.services.credentials.service import CredentialService

__all__ = [
    "ClientMeta",
    "CredentialConfig",
    "CredentialService",
    "LoginIn",
    "LogoutIn",
    "RefreshGrant",
    "RefreshIn",
    "RefreshTokenLedger",
    "TokenPairOut",
    "UserSummary",
]
