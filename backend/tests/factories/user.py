"""Factory Boy definition for :class:`taskauth.models.user.User`."""

from __future__ import annotations

import factory
from taskauth.models.user import User

from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """
    Build persisted :class:`taskauth.models.user.User` instances.

    Notes
    -----
    - The plain password is ``Passw0rd!`` unless ``password=...`` is passed.
    """

    class Meta:
        model = User

    id = None  # let autoincrement handle it
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    username = factory.Sequence(lambda n: f"user{n}")
    roles = "USER"
    is_active = True
    password_hash = factory.LazyFunction(lambda: "")  # set via postgen

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Set password using model setter (ensures hashing)."""
        value = extracted or DEFAULT_PASSWORD
        obj.password = value
