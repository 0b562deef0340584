"""Unit tests for UserRepository."""

import pytest
from taskauth.repositories.user import UserRepository

from tests.factories.user import UserFactory


class TestUserRepository:
    """Ensure ``UserRepository`` performs the login lookups."""

    @pytest.fixture()
    def repo(self):
        return UserRepository()

    def test_get_by_username(self, repo, session):
        """Create a user and fetch it by username to verify retrieval."""
        u = UserFactory(email="alice@example.com", username="alice")
        session.commit()

        fetched = repo.get_by_username("  alice ")
        assert fetched is not None
        assert fetched.id == u.id
        assert fetched.email == "alice@example.com"
        assert repo.get_by_username("nobody") is None

    def test_exists_flags(self, repo, session):
        """Return existence flags for known and unknown handles."""
        UserFactory(email="bob@example.com", username="bob")
        session.commit()

        assert repo.exists_by_email("BOB@example.com")
        assert repo.exists_by_username("bob")
        assert not repo.exists_by_email("nonexistent@example.com")
        assert not repo.exists_by_username("nonexistent")
