"""User repository for login lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from taskauth.models.user import User
from taskauth.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It never issues tokens; password checks are delegated to the model.
    """

    model = User

    def get_by_username(self, username: str) -> User | None:
        """Fetch a user by exact (trimmed) username.

        :param username: Login handle.
        :type username: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.username == username.strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_username(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username.strip())
        return bool(self.session.execute(stmt).first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())
