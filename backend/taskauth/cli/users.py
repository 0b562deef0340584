"""Flask CLI commands for managing login identities."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from taskauth.models.user import User
from taskauth.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)


@click.group("users")
def users_cli() -> None:
    """User account commands."""


@users_cli.command("create")
@click.argument("username")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", "roles", multiple=True, default=("USER",), show_default=True)
@with_appcontext
def create_command(username: str, email: str, password: str, roles: tuple[str, ...]) -> None:
    """Create an active user that can log in with PASSWORD."""
    with SQLAlchemyUnitOfWork() as uow:
        if uow.users.exists_by_username(username):
            raise click.ClickException(f"Username {username!r} is already taken")
        if uow.users.exists_by_email(email):
            raise click.ClickException(f"Email {email!r} is already registered")
        try:
            user = User(username=username, email=email)
            user.password = password
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        user.role_list = roles
        uow.users.add(user)
        uow.users.flush()
        user_id = user.id

    LOGGER.info("User created", extra={"event": "users.created", "user_id": str(user_id)})
    click.echo(f"Created user {username!r} (id={user_id})")


@users_cli.command("deactivate")
@click.argument("username")
@with_appcontext
def deactivate_command(username: str) -> None:
    """Disable USERNAME; existing refresh tokens stop working on next use."""
    with SQLAlchemyUnitOfWork() as uow:
        user = uow.users.get_by_username(username)
        if user is None:
            raise click.ClickException(f"No user named {username!r}")
        user.is_active = False
        user_id = user.id

    LOGGER.info("User deactivated", extra={"event": "users.deactivated", "user_id": str(user_id)})
    click.echo(f"Deactivated {username!r}")
