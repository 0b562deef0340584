"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or build
HTTP responses. The translation to RFC 7807 responses is handled by
``taskauth/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Stable client-facing rejection codes
# --------------------------------------------------------------------------- #

INVALID_CREDENTIALS = "invalid_credentials"
INVALID_TOKEN = "invalid_token"
TOKEN_EXPIRED = "token_expired"
TOKEN_REVOKED = "token_revoked"
RATE_LIMITED = "rate_limited"


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer or BaseService translates them to ``APIError``.
    """

    pass


class ConfigurationError(ServiceError):
    """Raised at startup when the process must not serve traffic."""


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


class CredentialRejected(ServiceError):
    """
    A login, refresh or bearer-token check was refused.

    :param code: One of the stable rejection codes defined in this module.
    :type code: str
    :param retry_after: Seconds until a new attempt may succeed
        (``rate_limited`` only).
    :type retry_after: int | None
    """

    def __init__(self, code: str, *, retry_after: int | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.retry_after = retry_after

    def __repr__(self) -> str:  # pragma: no cover
        return f"{type(self).__name__}(code={self.code!r}, retry_after={self.retry_after!r})"


class TokenRejected(CredentialRejected):
    """
    An access token failed verification.

    Clients always see ``invalid_token``; ``reason`` (``invalid_signature``,
    ``invalid_issuer``, ``invalid_audience``, ``token_expired``,
    ``token_not_yet_valid``, ``malformed_token``) is kept for logs and tests.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(INVALID_TOKEN)
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.code}: {self.reason}"


@dataclass(slots=True)
class StoreUnavailableError(ServiceError):
    """
    Raised when the refresh-token store cannot be reached.

    :param backend: Store name (``"sql"``, ``"redis"``).
    :type backend: str
    :param detail: Short internal description, never shown to clients.
    :type detail: str
    """

    backend: str
    detail: str = "store unavailable"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.backend} store unavailable: {self.detail}"

