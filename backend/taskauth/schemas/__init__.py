"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ClaimsSchema,
    LoginSchema,
    RefreshTokenSchema,
    TokenResponseSchema,
    UserSummarySchema,
)

__all__ = [
    "ClaimsSchema",
    "LoginSchema",
    "RefreshTokenSchema",
    "TokenResponseSchema",
    "UserSummarySchema",
]
