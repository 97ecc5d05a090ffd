"""Sync commands for the watchsync CLI.

Commands:
- watch: Full sync, then mirror every local change until Ctrl+C
- check: Validate a profile and its remote setup
- dry-run: Show what a full sync would change
- doctor: Check that rsync and inotifywait are installed
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import click

from watchsync.app import AppContext
from watchsync.cli.config import get_auto_start_alias, get_profile
from watchsync.core.config import Profile
from watchsync.core.errors import AuthenticationError, WatchSyncError
from watchsync.core.validation import (
    expand_local_dir,
    resolve_workspace_folder,
    validate_profile,
)
from watchsync.notifications import attach_notifications
from watchsync.sync.events import (
    ErrorRaised,
    FilesChanged,
    StateChanged,
    SyncCompleted,
    SyncEvent,
    SyncFailed,
)
from watchsync.sync.executor import classify_exit_code
from watchsync.sync.process import INSTALL_HINT, REQUIRED_TOOLS, command_exists

workspace_option = click.option(
    "--workspace",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Folder substituted for ${workspaceFolder} (default: current directory).",
)


def _create_app(ctx: click.Context) -> AppContext:
    obj = ctx.obj or {}
    return AppContext.create(verbose=obj.get("verbose", False), log_file=obj.get("log_file"))


def _load_profile(alias: str, workspace: Path | None) -> Profile:
    try:
        profile = get_profile(alias)
    except WatchSyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return expand_local_dir(resolve_workspace_folder(profile, workspace or Path.cwd()))


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def print_event(event: SyncEvent) -> None:
    """Echo a sync event for the operator."""
    if isinstance(event, StateChanged):
        click.echo(click.style(f"[{event.new_state.value}]", fg="cyan"))
    elif isinstance(event, FilesChanged):
        noun = "change" if len(event.paths) == 1 else "changes"
        click.echo(f"Detected {len(event.paths)} {noun}")
    elif isinstance(event, SyncCompleted):
        result = event.result
        click.echo(
            f"  ✓ {event.job.strategy.value} sync: {result.files_transferred} files, "
            f"{_format_size(result.bytes_transferred)} in {result.duration:.1f}s"
        )
    elif isinstance(event, SyncFailed):
        click.echo(click.style(f"  ✗ Sync failed: {event.error}", fg="red"), err=True)
    elif isinstance(event, ErrorRaised):
        if event.recoverable:
            click.echo(
                click.style(
                    f"Error: {event.message} "
                    f"(retry {event.retry_count + 1}/{event.max_retries})",
                    fg="yellow",
                ),
                err=True,
            )
        else:
            click.echo(click.style(f"Error: {event.message}", fg="red"), err=True)


@click.command()
@click.argument("alias", required=False)
@workspace_option
@click.option("--notify/--no-notify", default=True, help="Desktop notification when syncing stops.")
@click.pass_context
def watch(ctx: click.Context, alias: str | None, workspace: Path | None, notify: bool) -> None:
    """Mirror a profile's local directory to its remote directory.

    Runs one full sync, then syncs every change until interrupted.
    Without ALIAS the auto-start profile is used.
    """
    alias = alias or get_auto_start_alias()
    if not alias:
        click.echo("Error: No profile given and no auto-start profile set.", err=True)
        click.echo("Run 'watchsync profile default ALIAS' or pass an alias.", err=True)
        sys.exit(1)

    profile = _load_profile(alias, workspace)

    app = _create_app(ctx)
    try:
        app.bus.subscribe(print_event)
        if notify:
            attach_notifications(app.bus)

        click.echo(
            f"Starting {profile.alias}: {profile.local_dir} -> "
            f"{profile.ssh_target}:{profile.remote_dir}"
        )
        if not app.orchestrator.start_authenticated(profile, app.credentials):
            failure = app.orchestrator.last_failure
            click.echo(f"Error: {failure or 'start aborted'}", err=True)
            sys.exit(1)

        click.echo("Watching for changes. Press Ctrl+C to stop.")
        stop_event = threading.Event()
        try:
            while not stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            click.echo("\nStopping...")
    finally:
        app.close()


@click.command()
@click.argument("alias")
@workspace_option
@click.pass_context
def check(ctx: click.Context, alias: str, workspace: Path | None) -> None:
    """Check a profile and the remote directory it points to."""
    profile = _load_profile(alias, workspace)

    validation = validate_profile(profile)
    if not validation.valid:
        click.echo(click.style("✗ Profile is invalid:", fg="red"))
        for error in validation.errors:
            click.echo(f"  - {error}")
        sys.exit(1)
    click.echo("✓ Profile is valid")

    app = _create_app(ctx)
    try:
        password = app.credentials.get(profile.remote_host, profile.remote_user)
        app.session.set_password(password)
        report = app.session.validate_setup(profile)
    finally:
        app.close()

    checks = [
        (report.connected, f"Connected to {profile.ssh_target}:{profile.ssh_port}"),
        (report.remote_directory_exists, f"Remote directory exists: {profile.remote_dir}"),
        (report.has_write_permission, "Remote directory is writable"),
    ]
    for passed, label in checks:
        if passed:
            click.echo(f"✓ {label}")

    if not report.ok:
        for error in report.errors:
            click.echo(click.style(f"✗ {error}", fg="red"))
        if isinstance(report.failure, AuthenticationError):
            click.echo(f"Store a password with: watchsync password set {alias}")
        sys.exit(1)


@click.command(name="dry-run")
@click.argument("alias")
@workspace_option
@click.pass_context
def dry_run(ctx: click.Context, alias: str, workspace: Path | None) -> None:
    """Show what a full sync would transfer and delete."""
    profile = _load_profile(alias, workspace)

    app = _create_app(ctx)
    try:
        password = app.credentials.get(profile.remote_host, profile.remote_user)
        app.orchestrator.set_password(password)
        outcome, result = app.service.executor.dry_run(
            profile,
            app.service.builder,
            timeout=app.settings.dry_run_timeout_s,
        )
    finally:
        app.close()

    if outcome.timed_out:
        click.echo(f"Error: dry run timed out after {app.settings.dry_run_timeout_s:g}s", err=True)
        sys.exit(1)
    if outcome.exit_code != 0:
        info = classify_exit_code(outcome.exit_code)
        click.echo(f"Error: rsync failed (exit code {info.code}): {info.description}", err=True)
        if outcome.stderr.strip():
            click.echo(outcome.stderr.strip(), err=True)
        sys.exit(1)

    if not result.files_to_transfer and not result.files_to_delete:
        click.echo("Remote is up to date.")
        return

    if result.files_to_transfer:
        click.echo(f"Would transfer {len(result.files_to_transfer)} files:")
        for path in result.files_to_transfer:
            click.echo(f"  + {path}")
    if result.files_to_delete:
        click.echo(click.style(f"Would delete {len(result.files_to_delete)} files:", fg="yellow"))
        for path in result.files_to_delete:
            click.echo(f"  - {path}")


@click.command()
def doctor() -> None:
    """Check that the external tools watchsync needs are installed."""
    missing = []
    for tool in REQUIRED_TOOLS:
        if command_exists(tool):
            click.echo(f"✓ {tool}")
        else:
            click.echo(click.style(f"✗ {tool} not found", fg="red"))
            missing.append(tool)

    if missing:
        click.echo(f"\nInstall with: {INSTALL_HINT}")
        sys.exit(1)
    click.echo("\nAll dependencies are installed.")
