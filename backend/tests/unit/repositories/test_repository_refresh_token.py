"""Unit tests for RefreshTokenRepository conditional writes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from taskauth.models.refresh_token import RefreshToken
from taskauth.repositories.refresh_token import RefreshTokenRepository

NOW = datetime(2025, 6, 1, 8, 30, tzinfo=UTC)


class TestRefreshTokenRepository:
    """Ensure ``RefreshTokenRepository`` transitions rows at most once."""

    @pytest.fixture()
    def repo(self, session):
        return RefreshTokenRepository(session=session)

    @pytest.fixture()
    def row(self, repo, session):
        token = RefreshToken(
            id="a" * 32,
            user_id="7",
            token_hash="h" * 43,
            issued_at=NOW,
            expires_at=NOW + timedelta(days=14),
        )
        repo.add(token)
        session.commit()
        return token

    def test_get_by_hash(self, repo, row):
        assert repo.get_by_hash("h" * 43).id == row.id
        assert repo.get_by_hash("missing") is None

    def test_mark_rotated_once(self, repo, row, session):
        assert repo.mark_rotated(row.id, successor_id="b" * 32, successor_hash="s", now=NOW) is True
        assert repo.mark_rotated(row.id, successor_id="c" * 32, successor_hash="t", now=NOW) is False
        session.commit()

        fresh = repo.get(row.id)
        assert fresh.replaced_by_id == "b" * 32
        assert fresh.revoked_at == NOW

    def test_mark_rotated_skips_expired(self, repo, row):
        expired_at = NOW + timedelta(days=14)
        assert repo.mark_rotated(row.id, successor_id="b" * 32, successor_hash="s", now=expired_at) is False

    def test_mark_revoked_once(self, repo, row):
        assert repo.mark_revoked(row.id, now=NOW) is True
        assert repo.mark_revoked(row.id, now=NOW) is False
        assert repo.mark_revoked("missing", now=NOW) is False
