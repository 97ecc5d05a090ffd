"""Configuration values for watchsync.

This module defines:
- Profile: immutable description of one local/remote directory pairing
- OrchestratorSettings: timing and retry knobs for the sync engine
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from watchsync.core.errors import ConfigurationError
from watchsync.core.types import ConflictPolicy, SyncDirection

DEFAULT_SSH_PORT = 22

# Persisted (camelCase) key -> attribute name
_PERSISTED_FIELDS = {
    "alias": "alias",
    "remoteUser": "remote_user",
    "remoteHost": "remote_host",
    "remoteDir": "remote_dir",
    "localDir": "local_dir",
    "sshPort": "ssh_port",
    "direction": "direction",
    "conflictPolicy": "conflict_policy",
    "exclude": "exclude",
    "identityFile": "identity_file",
}


@dataclass(frozen=True)
class Profile:
    """A named local -> remote directory pairing.

    Profiles are never mutated; use with_changes() to derive a new one.

    Attributes:
        alias: Unique profile name.
        remote_user: SSH user on the remote host.
        remote_host: Remote host name or address.
        remote_dir: Absolute directory on the remote host.
        local_dir: Local directory to mirror.
        ssh_port: SSH port (default 22).
        direction: Sync direction; only localToRemote is carried out.
        conflict_policy: Always localWins.
        exclude: Ordered exclude patterns (rsync style globs).
        identity_file: Optional private key for SSH authentication.
    """

    alias: str
    remote_user: str
    remote_host: str
    remote_dir: str
    local_dir: str
    ssh_port: int = DEFAULT_SSH_PORT
    direction: SyncDirection = SyncDirection.LOCAL_TO_REMOTE
    conflict_policy: ConflictPolicy = ConflictPolicy.LOCAL_WINS
    exclude: tuple[str, ...] = field(default_factory=tuple)
    identity_file: str | None = None

    def __post_init__(self) -> None:
        """Normalize list-like exclude values to a tuple."""
        if not isinstance(self.exclude, tuple):
            object.__setattr__(self, "exclude", tuple(self.exclude))

    @property
    def ssh_target(self) -> str:
        """Return ``user@host``."""
        return f"{self.remote_user}@{self.remote_host}"

    def with_changes(self, **changes: Any) -> Profile:
        """Return a copy of this profile with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        """Build a profile from its persisted form.

        Raises:
            ConfigurationError: If a field has an unsupported value.
        """
        kwargs: dict[str, Any] = {}
        for key, attr in _PERSISTED_FIELDS.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]

        for required in ("alias", "remote_user", "remote_host", "remote_dir", "local_dir"):
            kwargs.setdefault(required, "")

        try:
            if "direction" in kwargs:
                kwargs["direction"] = SyncDirection(kwargs["direction"])
            if "conflict_policy" in kwargs:
                kwargs["conflict_policy"] = ConflictPolicy(kwargs["conflict_policy"])
        except ValueError as e:
            raise ConfigurationError("profile", f"Invalid profile value: {e}") from e

        if "ssh_port" in kwargs:
            try:
                kwargs["ssh_port"] = int(kwargs["ssh_port"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    "sshPort", f"SSH port must be a number, got {kwargs['ssh_port']!r}"
                ) from e

        kwargs["exclude"] = tuple(str(p) for p in kwargs.get("exclude", ()))
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted (camelCase) form."""
        data: dict[str, Any] = {}
        for key, attr in _PERSISTED_FIELDS.items():
            value = getattr(self, attr)
            if attr == "identity_file" and value is None:
                continue
            if isinstance(value, SyncDirection | ConflictPolicy):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            data[key] = value
        return data


@dataclass
class OrchestratorSettings:
    """Timing and retry settings for the sync engine.

    Attributes:
        quiet_window_ms: Debounce window for change batches.
        max_retries: Recovery attempts before a failure is reported as final.
        recovery_delay_s: Delay before a recovery attempt.
        revalidate_on_recovery: Test the connection before re-entering watching.
        transfer_timeout_s: Timeout for a single rsync run.
        dry_run_timeout_s: Timeout for a dry run.
        connect_timeout_s: SSH connection timeout.
        command_timeout_s: Timeout for remote commands.
        kill_grace_s: Grace period between SIGTERM and SIGKILL.
    """

    quiet_window_ms: int = 200
    max_retries: int = 3
    recovery_delay_s: float = 5.0
    revalidate_on_recovery: bool = True
    transfer_timeout_s: float = 300.0
    dry_run_timeout_s: float = 60.0
    connect_timeout_s: float = 10.0
    command_timeout_s: float = 60.0
    kill_grace_s: float = 5.0
