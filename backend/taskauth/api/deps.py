"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from taskauth.core.errors import NO_STORE_HEADERS, Unauthorized
from taskauth.core.proxy import client_ip
from taskauth.core.security import get_credential_service
from taskauth.infra.jwt.verifier import AccessClaims
from taskauth.services._shared.errors import INVALID_TOKEN, ServiceError
from taskauth.services.credentials.dto import ClientMeta

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "


def client_meta() -> ClientMeta:
    """Build :class:`ClientMeta` from the current request."""
    return ClientMeta(ip=client_ip(), user_agent=request.headers.get("User-Agent"))


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token; claims land on ``g``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = _bearer_token()
        if token is None:
            raise Unauthorized("Missing bearer token", code=INVALID_TOKEN)
        service = get_credential_service()
        try:
            g.access_claims = service.verify_access_token(token)
        except ServiceError as exc:
            raise service.translate_exceptions(exc) from exc
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_claims() -> AccessClaims:
    """Return the claims verified by :func:`require_auth`."""
    return cast(AccessClaims, g.access_claims)


def json_response(payload: Any, *, status: int = 200, no_store: bool = False) -> Response:
    """Return a JSON response; ``no_store`` adds the credential cache headers."""

    response = jsonify(payload)
    response.status_code = status
    if no_store:
        for name, value in NO_STORE_HEADERS.items():
            response.headers[name] = value
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
