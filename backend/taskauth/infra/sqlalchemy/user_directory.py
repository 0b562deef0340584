"""User directory backed by the ``users`` table."""

from __future__ import annotations

from taskauth.models.user import User
from taskauth.services._shared.ports import UserDirectory, UserRecord
from taskauth.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=str(user.id),
        username=user.username,
        password_hash=user.password_hash,
        roles=user.role_list,
        authorities=user.role_list,
        email=user.email,
        is_active=user.is_active,
    )


class SQLAlchemyUserDirectory(UserDirectory):
    """Read-only adapter; password checks use werkzeug's hash format."""

    def find_user_by_username(self, username: str) -> UserRecord | None:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            user = uow.users.get_by_username(username)
            return _to_record(user) if user is not None else None

    def get_user(self, user_id: str) -> UserRecord | None:
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return None
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            user = uow.users.get(pk)
            return _to_record(user) if user is not None else None
