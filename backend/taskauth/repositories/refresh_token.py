"""Refresh-token repository with conditional (compare-and-set) writes."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import select, update

from taskauth.models.refresh_token import RefreshToken
from taskauth.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken` rows.

    State transitions are single ``UPDATE ... WHERE revoked_at IS NULL``
    statements; the affected row count tells the caller whether it won.
    """

    model = RefreshToken

    def get_by_hash(self, token_hash: str) -> RefreshToken | None:
        """Return the row whose hash matches, or ``None``."""
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def mark_rotated(
        self,
        token_id: str,
        *,
        successor_id: str,
        successor_hash: str,
        now: datetime,
    ) -> bool:
        """Conditionally mark ``token_id`` as rotated into ``successor_id``.

        :returns: ``True`` when exactly this call performed the transition.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(
                revoked_at=now,
                replaced_by_id=successor_id,
                successor_hash=successor_hash,
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def mark_revoked(self, token_id: str, *, now: datetime) -> bool:
        """Conditionally revoke ``token_id`` without a successor."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1
