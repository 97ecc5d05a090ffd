"""Command-line interface for watchsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- watch: Mirror a profile continuously
- check: Validate a profile and its remote directory
- dry-run: Preview a full sync
- doctor: Check for rsync and inotifywait
- profile: add, list, remove, default
- password: set, forget
"""

from __future__ import annotations

from pathlib import Path

import click

from watchsync import __version__
from watchsync.cli.config import (
    get_auto_start_alias,
    get_config_dir,
    get_config_file,
    get_profile,
    load_config,
    load_profiles,
    save_config,
)
from watchsync.cli.password import password
from watchsync.cli.profile import profile
from watchsync.cli.watch import check, doctor, dry_run, watch


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: Path | None) -> None:
    """watchsync - Mirror a local directory to a remote host over SSH."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file


# Sync commands
cli.add_command(watch)
cli.add_command(check)
cli.add_command(dry_run)
cli.add_command(doctor)

# Configuration commands
cli.add_command(profile)
cli.add_command(password)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_auto_start_alias",
    "get_config_dir",
    "get_config_file",
    "get_profile",
    "load_config",
    "load_profiles",
    "save_config",
]
