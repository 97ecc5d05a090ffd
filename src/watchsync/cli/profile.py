"""Profile management commands for the watchsync CLI.

Commands:
- profile add: Create or replace a profile (prompts for missing values)
- profile list: Show saved profiles
- profile remove: Delete a profile
- profile default: Set or clear the auto-start profile
"""

from __future__ import annotations

import sys

import click

from watchsync.cli.config import (
    delete_profile,
    get_auto_start_alias,
    load_profiles,
    save_profile,
    set_auto_start_alias,
)
from watchsync.core.config import DEFAULT_SSH_PORT, Profile
from watchsync.core.errors import WatchSyncError
from watchsync.core.validation import validate_profile

DEFAULT_EXCLUDES = (".git", "node_modules", "__pycache__", ".venv")


@click.group()
def profile() -> None:
    """Manage sync profiles."""


@profile.command(name="add")
@click.argument("alias")
@click.option("--host", "remote_host", help="Remote host name or address.")
@click.option("--user", "remote_user", help="SSH user on the remote host.")
@click.option("--remote-dir", help="Absolute directory on the remote host.")
@click.option("--local-dir", help="Local directory (may use ${workspaceFolder}).")
@click.option("--port", "ssh_port", type=int, default=None, help="SSH port (default: 22).")
@click.option("--identity-file", default=None, help="Private key used for SSH.")
@click.option(
    "--exclude",
    "excludes",
    multiple=True,
    help="Exclude pattern (repeatable). Defaults to common build/VCS folders.",
)
@click.option("--default", "make_default", is_flag=True, help="Use as auto-start profile.")
def add(
    alias: str,
    remote_host: str | None,
    remote_user: str | None,
    remote_dir: str | None,
    local_dir: str | None,
    ssh_port: int | None,
    identity_file: str | None,
    excludes: tuple[str, ...],
    make_default: bool,
) -> None:
    """Create or replace the profile ALIAS.

    Values not given as options are asked for interactively.
    """
    remote_host = remote_host or click.prompt("Remote host")
    remote_user = remote_user or click.prompt("Remote user")
    remote_dir = remote_dir or click.prompt("Remote directory")
    local_dir = local_dir or click.prompt("Local directory", default="${workspaceFolder}")
    if ssh_port is None:
        ssh_port = DEFAULT_SSH_PORT

    new_profile = Profile(
        alias=alias,
        remote_user=remote_user,
        remote_host=remote_host,
        remote_dir=remote_dir,
        local_dir=local_dir,
        ssh_port=ssh_port,
        exclude=excludes or DEFAULT_EXCLUDES,
        identity_file=identity_file,
    )

    # The local directory is checked when syncing starts, it may be a template
    result = validate_profile(new_profile, check_local_directory=False)
    if not result.valid:
        click.echo("Error: Invalid profile:", err=True)
        for error in result.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    try:
        save_profile(new_profile)
        if make_default:
            set_auto_start_alias(alias)
    except WatchSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Saved profile '{alias}': {new_profile.local_dir} -> "
        f"{new_profile.ssh_target}:{new_profile.remote_dir}"
    )


@profile.command(name="list")
def list_profiles() -> None:
    """List saved profiles."""
    try:
        profiles = load_profiles()
        default_alias = get_auto_start_alias()
    except WatchSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not profiles:
        click.echo("No profiles. Create one with 'watchsync profile add ALIAS'.")
        return

    for item in profiles:
        marker = "*" if item.alias == default_alias else " "
        click.echo(
            f"{marker} {item.alias}: {item.local_dir} -> "
            f"{item.ssh_target}:{item.remote_dir} (port {item.ssh_port})"
        )
        if item.exclude:
            click.echo(f"    exclude: {', '.join(item.exclude)}")


@profile.command(name="remove")
@click.argument("alias")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def remove(alias: str, yes: bool) -> None:
    """Delete the profile ALIAS."""
    if not yes and not click.confirm(f"Delete profile '{alias}'?"):
        click.echo("Aborted.")
        return

    if not delete_profile(alias):
        click.echo(f"Error: Profile not found: {alias}", err=True)
        sys.exit(1)
    click.echo(f"Deleted profile '{alias}'")


@profile.command(name="default")
@click.argument("alias", required=False)
@click.option("--clear", is_flag=True, help="Clear the auto-start profile.")
def default(alias: str | None, clear: bool) -> None:
    """Show or set the profile `watch` starts without an alias."""
    try:
        if clear:
            set_auto_start_alias(None)
            click.echo("Auto-start profile cleared")
            return
        if alias is None:
            current = get_auto_start_alias()
            click.echo(current or "No auto-start profile set")
            return
        set_auto_start_alias(alias)
    except WatchSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Auto-start profile: {alias}")
