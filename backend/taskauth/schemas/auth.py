"""Credential endpoint Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1, max=128))


class RefreshTokenSchema(Schema):
    """Input payload for refresh and logout."""

    refresh_token = fields.String(
        required=True, load_only=True, validate=validate.Length(min=1, max=256)
    )


class UserSummarySchema(Schema):
    id = fields.String(required=True)
    username = fields.String(required=True)
    roles = fields.List(fields.String())


class TokenResponseSchema(Schema):
    """Response payload for login and refresh."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="bearer")
    expires_in = fields.Integer(required=True)
    scope = fields.String()
    user = fields.Nested(UserSummarySchema)


class ClaimsSchema(Schema):
    """Response payload exposing the verified access-token claims."""

    sub = fields.String(required=True)
    username = fields.String(allow_none=True)
    roles = fields.List(fields.String())
    authorities = fields.List(fields.String())
    iss = fields.String()
    aud = fields.List(fields.String())
    iat = fields.Integer()
    exp = fields.Integer()
    jti = fields.String(allow_none=True)
    kid = fields.String()
