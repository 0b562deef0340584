"""
Unit tests for SQLAlchemyReadOnlyUnitOfWork, using factories.
"""

from __future__ import annotations

import pytest
from taskauth.models import User
from taskauth.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from taskauth.uow import SQLAlchemyUnitOfWork as RWuow

from tests.factories.user import UserFactory


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, app, db, session):
        """
        Ensure that attempting to flush ORM changes inside the RO UoW raises.
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            user = UserFactory.build()  # not persisted
            uow.session.add(user)
            uow.session.flush()

    def test_allows_reads(self, app, db, session):
        """
        Read operations should work normally within RO UoW.
        """
        with RWuow() as uow:
            u = UserFactory.build()
            uow.users.add(u)
            username = u.username

        with ROuow() as uow:
            assert uow.users.get_by_username(username) is not None

    def test_disallows_commit(self, app, db, session):
        """
        RO UoW must reject commit().
        """
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_always_rolls_back_changes(self, app, db, session):
        """
        Any attempted modifications must not persist after RO UoW exits.
        """
        with RWuow() as uow:
            user = UserFactory.build()
            uow.users.add(user)
            user_id = user.id

        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            u = uow.users.get(user_id)
            original_email = u.email
            u.email = "mutated-in-ro@example.com"
            uow.session.flush()

        with RWuow() as uow:
            persisted = uow.users.get(user_id)
            assert persisted.email == original_email

    def test_guard_is_removed_after_exit(self, app, db, session):
        """A writer UoW following a read-only one can flush again."""
        with ROuow():
            pass

        with RWuow() as uow:
            uow.users.add(UserFactory.build())
            assert db.session.query(User).count() >= 1
