"""SSH reachability and remote setup validation.

This module provides:
- RemoteSession: Opens paramiko sessions for a profile and runs commands
- ConnectionResult, CommandResult, SetupReport: Outcomes (never exceptions)

Authentication order: password if one is set, else the profile's identity
file, else the default keys in ~/.ssh tried one after the other.
"""

from __future__ import annotations

import logging
import posixpath
import shlex
import socket
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import paramiko

from watchsync.core.config import Profile
from watchsync.core.errors import (
    AuthenticationError,
    ConnectionTimeoutError,
    RemoteConnectionError,
    RemoteDirectoryError,
    WatchSyncError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_COMMAND_TIMEOUT_S = 60.0
DEFAULT_KEY_NAMES = ("id_rsa", "id_ed25519", "id_ecdsa")
MARKER_PREFIX = ".watchsync_write_check_"


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of a connectivity test."""

    success: bool
    latency_ms: float | None = None
    error: str | None = None
    auth_failed: bool = False
    timed_out: bool = False
    timeout_s: float | None = None

    def to_error(self, profile: Profile) -> RemoteConnectionError | AuthenticationError | None:
        """Typed error for a failed test (None on success)."""
        if self.success:
            return None
        if self.auth_failed:
            return AuthenticationError(profile.remote_host, profile.remote_user, self.error)
        if self.timed_out:
            return ConnectionTimeoutError(
                profile.remote_host, profile.ssh_port, self.timeout_s or DEFAULT_CONNECT_TIMEOUT_S
            )
        return RemoteConnectionError(profile.remote_host, profile.ssh_port, self.error)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a remote command."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int = -1


@dataclass
class SetupReport:
    """Result of validate_setup(); checks stop at the first failure."""

    connected: bool = False
    remote_directory_exists: bool = False
    has_write_permission: bool = False
    errors: list[str] = field(default_factory=list)
    failure: WatchSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.connected and self.remote_directory_exists and self.has_write_permission

    def fail(self, error: WatchSyncError) -> None:
        self.failure = error
        self.errors.append(str(error))


class _AuthFailed(Exception):
    pass


def default_key_paths(ssh_dir: Path | None = None) -> list[Path]:
    """Default private key locations, in the order they are tried."""
    base = ssh_dir or Path.home() / ".ssh"
    return [base / name for name in DEFAULT_KEY_NAMES]


class RemoteSession:
    """Validates that a profile's remote end is reachable and usable.

    Example:
        session = RemoteSession()
        session.set_password(password)  # optional
        report = session.validate_setup(profile)
        if not report.ok:
            print(report.errors)
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT_S,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
        ssh_dir: Path | None = None,
    ) -> None:
        """Initialize the session validator.

        Args:
            connect_timeout: Seconds allowed for connecting and authenticating.
            command_timeout: Seconds allowed for a remote command.
            client_factory: Creates SSH clients (replaced in tests).
            ssh_dir: Directory holding the default keys (~/.ssh).
        """
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._client_factory = client_factory
        self._ssh_dir = ssh_dir
        self._password: str | None = None

    def set_password(self, password: str | None) -> None:
        """Use password authentication (None switches back to keys)."""
        self._password = password or None

    @property
    def has_password(self) -> bool:
        return self._password is not None

    # =========================================================================
    # Public API
    # =========================================================================

    def test_connection(self, profile: Profile) -> ConnectionResult:
        """Open and close a session, measuring how long it took."""
        started = time.monotonic()
        try:
            client = self._connect(profile)
        except _AuthFailed as e:
            return ConnectionResult(success=False, error=str(e), auth_failed=True)
        except (TimeoutError, socket.timeout):
            message = f"Connection to {profile.remote_host} timed out after {self.connect_timeout:g}s"
            logger.warning(message)
            return ConnectionResult(
                success=False, error=message, timed_out=True, timeout_s=self.connect_timeout
            )
        except (paramiko.SSHException, OSError) as e:
            message = f"Failed to connect to {profile.remote_host}:{profile.ssh_port}: {e}"
            logger.warning(message)
            return ConnectionResult(success=False, error=message)

        latency_ms = (time.monotonic() - started) * 1000
        client.close()
        logger.debug("Connected to %s in %.0fms", profile.ssh_target, latency_ms)
        return ConnectionResult(success=True, latency_ms=latency_ms)

    def execute(self, profile: Profile, command: str) -> CommandResult:
        """Run one command on the remote host."""
        try:
            client = self._connect(profile)
        except (_AuthFailed, paramiko.SSHException, OSError) as e:
            return CommandResult(success=False, stderr=str(e))

        try:
            return self._run(client, command)
        finally:
            client.close()

    def validate_setup(self, profile: Profile) -> SetupReport:
        """Check connectivity, the remote directory and write permission."""
        report = SetupReport()

        try:
            client = self._connect(profile)
        except _AuthFailed as e:
            report.fail(AuthenticationError(profile.remote_host, profile.remote_user, str(e)))
            return report
        except (paramiko.SSHException, OSError) as e:
            report.fail(
                RemoteConnectionError(
                    profile.remote_host,
                    profile.ssh_port,
                    f"Cannot connect to {profile.remote_host}: {e}",
                )
            )
            return report
        report.connected = True

        try:
            remote_dir = profile.remote_dir
            result = self._run(client, f"test -d {shlex.quote(remote_dir)}")
            if not result.success:
                report.fail(RemoteDirectoryError(remote_dir, profile.remote_host, "not_found"))
                return report
            report.remote_directory_exists = True

            marker = shlex.quote(posixpath.join(remote_dir, f"{MARKER_PREFIX}{uuid.uuid4().hex}"))
            result = self._run(client, f"touch {marker} && rm -f {marker}")
            if not result.success:
                report.fail(
                    RemoteDirectoryError(
                        remote_dir,
                        profile.remote_host,
                        "not_writable",
                        result.stderr.strip() or None,
                    )
                )
                return report
            report.has_write_permission = True
        finally:
            client.close()

        return report

    # =========================================================================
    # Internals
    # =========================================================================

    def _new_client(self) -> paramiko.SSHClient:
        client = self._client_factory()
        try:
            client.load_system_host_keys()
        except OSError as e:
            logger.debug("Could not load system host keys: %s", e)
        # Accept and remember keys of hosts seen for the first time
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client

    def _connect_kwargs(self, profile: Profile) -> dict:
        return {
            "hostname": profile.remote_host,
            "port": profile.ssh_port,
            "username": profile.remote_user,
            "timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }

    def _key_candidates(self, profile: Profile) -> list[str]:
        if profile.identity_file:
            return [str(Path(profile.identity_file).expanduser())]
        return [str(p) for p in default_key_paths(self._ssh_dir) if p.is_file()]

    def _connect(self, profile: Profile) -> paramiko.SSHClient:
        """Open an authenticated session.

        Raises:
            _AuthFailed: If no credential was accepted.
            paramiko.SSHException, OSError: On network or protocol failure.
        """
        kwargs = self._connect_kwargs(profile)

        if self._password is not None:
            client = self._new_client()
            try:
                client.connect(password=self._password, **kwargs)
            except paramiko.AuthenticationException as e:
                client.close()
                raise _AuthFailed(f"Password rejected: {e}") from e
            except Exception:
                client.close()
                raise
            return client

        candidates = self._key_candidates(profile)
        if not candidates:
            raise _AuthFailed("No SSH key found and no password set")

        rejected: paramiko.AuthenticationException | None = None
        unusable: paramiko.SSHException | None = None
        for key_path in candidates:
            client = self._new_client()
            try:
                client.connect(key_filename=key_path, **kwargs)
            except paramiko.AuthenticationException as e:
                client.close()
                logger.debug("Key %s rejected by %s: %s", key_path, profile.remote_host, e)
                rejected = e
                continue
            except paramiko.SSHException as e:
                # Unreadable or unsupported key file; the next one may still work
                client.close()
                logger.debug("Could not use key %s: %s", key_path, e)
                unusable = e
                continue
            except Exception:
                client.close()
                raise
            logger.debug("Authenticated to %s with %s", profile.ssh_target, key_path)
            return client

        if rejected is None and unusable is not None:
            raise unusable
        raise _AuthFailed(f"No key accepted (tried {', '.join(candidates)}): {rejected}")

    def _run(self, client: paramiko.SSHClient, command: str) -> CommandResult:
        logger.debug("Remote command: %s", command)
        try:
            _, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            return CommandResult(success=False, stderr=str(e))
        return CommandResult(success=exit_code == 0, stdout=out, stderr=err, exit_code=exit_code)
