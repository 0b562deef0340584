"""WSGI proxy middleware and client-address helpers."""

from __future__ import annotations

from flask import Flask, request
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    Notes
    -----
    Controlled by ``USE_PROXYFIX`` (defaults to ``True``). Only one hop of
    ``X-Forwarded-*`` is trusted; the rate limiter keys on the resulting
    ``remote_addr``.
    """
    if app.config.get("USE_PROXYFIX", True):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)  # type: ignore[method-assign]


def client_ip() -> str:
    """Return the caller address for the current request."""
    return request.remote_addr or "unknown"
