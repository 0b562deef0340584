from __future__ import annotations

from dataclasses import dataclass

from taskauth.core import errors as api_errors
from taskauth.services._shared.errors import (
    RATE_LIMITED,
    CredentialRejected,
    ServiceError,
    StoreUnavailableError,
)

# Client-facing messages per rejection code; never hint at which check failed
_REJECTION_MESSAGES = {
    "invalid_credentials": "Invalid username or password",
    "invalid_token": "Invalid token",
    "token_expired": "Token expired",
    "token_revoked": "Token revoked",
}


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param actor_id: Authenticated user identifier.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Centralize error translation to API errors.
    * Keep services orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, CredentialRejected):
            if exc.code == RATE_LIMITED:
                # → 429 Too Many Requests
                return api_errors.TooManyRequests(retry_after=exc.retry_after or 60)
            # → 401 Unauthorized (verification reasons collapse to invalid_token)
            return api_errors.Unauthorized(
                _REJECTION_MESSAGES.get(exc.code, "Unauthorized"), code=exc.code
            )

        if isinstance(exc, StoreUnavailableError):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable()

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
