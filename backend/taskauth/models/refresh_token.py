"""Persisted refresh-token ledger rows."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taskauth.core.extensions import db

from .base import ReprMixin, UTCDateTime


class RefreshToken(ReprMixin, db.Model):
    """
    One issued refresh token, identified by the hash of its raw value.

    Rows are never deleted. ``revoked_at`` and ``replaced_by_id`` are written
    once by rotation or logout; a rotated row has both set, a logged-out row
    only ``revoked_at``.

    Fields
    ------
    id : str
        Opaque 32-char hex identifier.
    user_id : str
        Owning user id (string form, as carried in the ``sub`` claim).
    token_hash : str
        Keyed hash of the raw token. Unique.
    issued_at / expires_at : datetime
        Lifetime bounds (UTC).
    revoked_at : datetime | None
        Set on rotation or logout.
    replaced_by_id : str | None
        Successor id, set only on rotation.
    successor_hash : str | None
        Hash of the successor, for chain tracing.
    user_agent / ip_address : str | None
        Client metadata captured on issue.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    replaced_by_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    successor_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)

    __table_args__ = (
        UniqueConstraint("token_hash", name="uq_refresh_tokens_token_hash"),
        Index("ix_refresh_tokens_user_id", "user_id"),
    )
