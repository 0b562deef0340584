"""Repository package exposing persistence-layer access for the models."""

from __future__ import annotations

from taskauth.repositories.base import BaseRepository
from taskauth.repositories.refresh_token import RefreshTokenRepository
from taskauth.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
