"""Relational refresh-token store (default backend)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.exc import OperationalError

from taskauth.models.refresh_token import RefreshToken
from taskauth.services._shared.errors import StoreUnavailableError
from taskauth.services._shared.ports import RefreshTokenRecord, RefreshTokenStore
from taskauth.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork


def _to_record(row: RefreshToken) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        revoked_at=row.revoked_at,
        replaced_by_id=row.replaced_by_id,
        successor_hash=row.successor_hash,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
    )


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Refresh-token store on the ``refresh_tokens`` table.

    Every call runs in its own Unit of Work. Rotation issues the conditional
    ``UPDATE ... WHERE revoked_at IS NULL`` first and only inserts the
    successor when exactly one row changed, all in one transaction.
    """

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except OperationalError as exc:
            raise StoreUnavailableError("sql", type(exc.orig).__name__) from exc

    def add(self, record: RefreshTokenRecord) -> None:
        with self._guard(), SQLAlchemyUnitOfWork() as uow:
            uow.refresh_tokens.add(
                RefreshToken(
                    id=record.id,
                    user_id=record.user_id,
                    token_hash=record.token_hash,
                    issued_at=record.issued_at,
                    expires_at=record.expires_at,
                    user_agent=record.user_agent,
                    ip_address=record.ip_address,
                )
            )

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._guard(), SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.get_by_hash(token_hash)
            return _to_record(row) if row is not None else None

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        with self._guard(), SQLAlchemyReadOnlyUnitOfWork() as uow:
            row = uow.refresh_tokens.get(token_id)
            return _to_record(row) if row is not None else None

    def rotate(
        self, *, current_id: str, successor: RefreshTokenRecord, now: datetime
    ) -> bool:
        with self._guard(), SQLAlchemyUnitOfWork() as uow:
            won = uow.refresh_tokens.mark_rotated(
                current_id,
                successor_id=successor.id,
                successor_hash=successor.token_hash,
                now=now,
            )
            if not won:
                return False
            uow.refresh_tokens.add(
                RefreshToken(
                    id=successor.id,
                    user_id=successor.user_id,
                    token_hash=successor.token_hash,
                    issued_at=successor.issued_at,
                    expires_at=successor.expires_at,
                    user_agent=successor.user_agent,
                    ip_address=successor.ip_address,
                )
            )
            return True

    def revoke(self, token_id: str, *, now: datetime) -> bool:
        with self._guard(), SQLAlchemyUnitOfWork() as uow:
            return uow.refresh_tokens.mark_revoked(token_id, now=now)
