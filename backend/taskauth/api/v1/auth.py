"""Credential endpoints: login, refresh, logout and token introspection."""

from __future__ import annotations

from flask import Blueprint, request

from taskauth.api.deps import client_meta, current_claims, json_response, require_auth, timing
from taskauth.core.security import get_credential_service
from taskauth.schemas import (
    ClaimsSchema,
    LoginSchema,
    RefreshTokenSchema,
    TokenResponseSchema,
)
from taskauth.services._shared.errors import ServiceError
from taskauth.services.credentials import LoginIn, LogoutIn, RefreshIn

bp = Blueprint("auth", __name__)

login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
token_schema = TokenResponseSchema()
claims_schema = ClaimsSchema()


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""

    data = login_schema.load(request.get_json(silent=True) or {})
    service = get_credential_service()
    try:
        pair = service.login(LoginIn(username=data["username"], password=data["password"]), client_meta())
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": token_schema.dump(pair.to_dict())}, no_store=True)


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new pair; the presented token is consumed."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    service = get_credential_service()
    try:
        pair = service.refresh(RefreshIn(refresh_token=data["refresh_token"]), client_meta())
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": token_schema.dump(pair.to_dict())}, no_store=True)


@bp.post("/logout")
@timing
def logout():
    """Revoke a refresh token. Unknown or already revoked tokens succeed too."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    service = get_credential_service()
    try:
        service.logout(LogoutIn(refresh_token=data["refresh_token"]))
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": {"status": "logged_out"}}, no_store=True)


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the verified claims of the presented access token."""

    return json_response({"data": claims_schema.dump(current_claims().to_dict())}, no_store=True)
