"""Public key discovery for local and staging-free development setups."""

from __future__ import annotations

from flask import Blueprint

from taskauth.api.deps import json_response
from taskauth.core.security import get_credentials

bp = Blueprint("jwks", __name__)


@bp.get("/.well-known/jwks.json")
def jwks():
    """Return the public JWK set (no private material)."""

    return json_response(get_credentials().key_store.public_jwks())
