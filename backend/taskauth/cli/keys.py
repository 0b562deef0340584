"""Flask CLI commands for managing RS256 signing keys."""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import uuid4

import click
from flask.cli import with_appcontext

from taskauth.core.security import get_credentials
from taskauth.infra.jwt.key_store import MIN_KEY_BITS, describe_keys, generate_rsa_keypair

LOGGER = logging.getLogger(__name__)


@click.group("keys")
def keys_cli() -> None:
    """Signing key maintenance commands."""


@keys_cli.command("generate")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.option("--kid", default=None, help="Key id; a random one is used when omitted.")
@click.option("--bits", default=MIN_KEY_BITS, show_default=True, type=click.IntRange(min=MIN_KEY_BITS))
def generate_command(directory: Path, kid: str | None, bits: int) -> None:
    """Write a new PEM key pair named after its key id into DIRECTORY."""
    key_id = kid or uuid4().hex
    directory.mkdir(parents=True, exist_ok=True)
    private_path = directory / f"{key_id}.private.pem"
    public_path = directory / f"{key_id}.public.pem"
    if private_path.exists() or public_path.exists():
        raise click.ClickException(f"Key files for {key_id!r} already exist in {directory}")

    private_pem, public_pem = generate_rsa_keypair(bits)
    private_path.write_bytes(private_pem)
    private_path.chmod(0o600)
    public_path.write_bytes(public_pem)
    LOGGER.info("Generated signing key", extra={"event": "keys.generated", "kid": key_id})

    click.echo(f"kid:     {key_id}")
    click.echo(f"private: {private_path}")
    click.echo(f"public:  {public_path}")
    click.echo("Append the paths to JWT_PEM_PRIVATE/JWT_PEM_PUBLIC and the kid to JWT_KEY_IDS.")


@keys_cli.command("show")
@with_appcontext
def show_command() -> None:
    """List the loaded key ids and mark the one used for signing."""
    snapshot = get_credentials().key_store.snapshot()
    if snapshot.ephemeral:
        click.echo("Using an ephemeral key (no JWT keys configured)")
    for line in describe_keys(snapshot.key_ids, snapshot.current_key_id):
        click.echo(f"  {line}")
