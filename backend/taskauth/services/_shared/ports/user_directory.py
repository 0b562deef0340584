from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol

from werkzeug.security import check_password_hash, generate_password_hash

# Compared against when the username is unknown so both paths cost one hash check
DUMMY_PASSWORD_HASH = generate_password_hash("not-a-real-password")


@dataclass(frozen=True, slots=True)
class UserRecord:
    """
    Login view of a user.

    :ivar id: User id as carried in the ``sub`` claim.
    :ivar username: Login handle.
    :ivar password_hash: Stored password hash.
    :ivar roles: Role names copied into access tokens.
    :ivar authorities: Fine-grained authorities copied into access tokens.
    :ivar email: Contact email, when known.
    :ivar is_active: Disabled users cannot log in or refresh.
    """

    id: str
    username: str
    password_hash: str
    roles: tuple[str, ...] = ()
    authorities: tuple[str, ...] = ()
    email: str | None = None
    is_active: bool = True


class UserDirectory(Protocol):
    """Port onto the user/password store owned by the wider application."""

    def find_user_by_username(self, username: str) -> UserRecord | None: ...

    def get_user(self, user_id: str) -> UserRecord | None: ...

    def verify_password(self, plaintext: str, stored_hash: str) -> bool:
        """Check ``plaintext`` against a stored werkzeug hash."""
        return bool(check_password_hash(stored_hash, plaintext))


@dataclass
class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory used in unit tests."""

    _users: dict[str, UserRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add_user(
        self,
        *,
        user_id: str,
        username: str,
        password: str,
        roles: tuple[str, ...] = ("USER",),
        is_active: bool = True,
    ) -> UserRecord:
        record = UserRecord(
            id=user_id,
            username=username,
            password_hash=generate_password_hash(password),
            roles=roles,
            is_active=is_active,
        )
        with self._lock:
            self._users[user_id] = record
        return record

    def remove_user(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)

    def find_user_by_username(self, username: str) -> UserRecord | None:
        for record in list(self._users.values()):
            if record.username == username:
                return record
        return None

    def get_user(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)
