"""Password commands for the watchsync CLI.

Commands:
- password set: Store the SSH password of a profile in the system keyring
- password forget: Remove it again
"""

from __future__ import annotations

import sys

import click

from watchsync.cli.config import get_profile
from watchsync.core.config import Profile
from watchsync.core.errors import WatchSyncError
from watchsync.remote.credentials import CredentialStore


def _profile_or_exit(alias: str) -> Profile:
    try:
        return get_profile(alias)
    except WatchSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
def password() -> None:
    """Manage stored SSH passwords."""


@password.command(name="set")
@click.argument("alias")
def set_password(alias: str) -> None:
    """Store the SSH password for the profile ALIAS."""
    target = _profile_or_exit(alias)
    secret = click.prompt(
        f"Password for {target.ssh_target}",
        hide_input=True,
        confirmation_prompt="Confirm password",
    )
    if not CredentialStore().set(target.remote_host, target.remote_user, secret):
        click.echo("Error: Could not store password in the system keyring.", err=True)
        sys.exit(1)
    click.echo(f"Password stored for {target.ssh_target}")


@password.command(name="forget")
@click.argument("alias")
def forget(alias: str) -> None:
    """Remove the stored SSH password for the profile ALIAS."""
    target = _profile_or_exit(alias)
    if CredentialStore().delete(target.remote_host, target.remote_user):
        click.echo(f"Password removed for {target.ssh_target}")
    else:
        click.echo(f"No stored password for {target.ssh_target}")
