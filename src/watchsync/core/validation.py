"""Profile validation.

Checks run before any external process is started: required fields,
SSH port range and the local directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from watchsync.core.config import Profile
from watchsync.core.errors import ConfigurationError, LocalDirectoryError
from watchsync.core.types import SyncDirection

logger = logging.getLogger(__name__)

WORKSPACE_FOLDER_VARIABLE = "${workspaceFolder}"

_REQUIRED_FIELDS = (
    ("alias", "Profile alias is required"),
    ("remote_user", "Remote user is required"),
    ("remote_host", "Remote host is required"),
    ("remote_dir", "Remote directory is required"),
    ("local_dir", "Local directory is required"),
)


@dataclass
class ValidationResult:
    """Outcome of a profile validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    directory_error: LocalDirectoryError | None = None

    def to_error(self) -> ConfigurationError | LocalDirectoryError | None:
        """Convert a failed result into a typed error.

        A local directory problem on its own keeps its LocalDirectoryError;
        anything else becomes a ConfigurationError listing every problem.
        """
        if self.valid:
            return None
        if self.directory_error is not None and len(self.errors) == 1:
            return self.directory_error
        return ConfigurationError("validation", "; ".join(self.errors))


def resolve_workspace_folder(profile: Profile, workspace_folder: str | Path | None) -> Profile:
    """Substitute ``${workspaceFolder}`` in the profile's directories."""
    if not workspace_folder:
        return profile
    folder = str(workspace_folder)
    return profile.with_changes(
        local_dir=profile.local_dir.replace(WORKSPACE_FOLDER_VARIABLE, folder),
        remote_dir=profile.remote_dir.replace(WORKSPACE_FOLDER_VARIABLE, folder),
    )


def expand_local_dir(profile: Profile) -> Profile:
    """Expand ``~`` in local_dir; rsync and inotifywait get the path verbatim."""
    if not profile.local_dir:
        return profile
    expanded = os.path.expanduser(profile.local_dir)
    if expanded == profile.local_dir:
        return profile
    return profile.with_changes(local_dir=expanded)


def validate_profile(
    profile: Profile,
    check_local_directory: bool = True,
    workspace_folder: str | Path | None = None,
) -> ValidationResult:
    """Validate a profile.

    Args:
        profile: Profile to check.
        check_local_directory: Also check the local directory on disk.
        workspace_folder: Value for ``${workspaceFolder}`` in local_dir.

    Returns:
        ValidationResult listing every problem found.
    """
    errors: list[str] = []

    for attr, message in _REQUIRED_FIELDS:
        value = getattr(profile, attr)
        if not isinstance(value, str) or not value.strip():
            errors.append(message)

    # Missing fields make the remaining checks meaningless
    if errors:
        return ValidationResult(valid=False, errors=errors)

    port = profile.ssh_port
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        errors.append("SSH port must be a valid port number (1-65535)")

    if profile.direction != SyncDirection.LOCAL_TO_REMOTE:
        logger.warning(
            "Profile %s requests direction %s; only localToRemote is synced",
            profile.alias,
            profile.direction.value,
        )

    directory_error = None
    if check_local_directory:
        local_dir = resolve_workspace_folder(profile, workspace_folder).local_dir
        directory_error = check_local_directory_path(Path(local_dir).expanduser())
        if directory_error is not None:
            errors.append(str(directory_error))

    return ValidationResult(valid=not errors, errors=errors, directory_error=directory_error)


def check_local_directory_path(path: Path) -> LocalDirectoryError | None:
    """Return the problem with a local sync directory, or None if usable."""
    if not path.exists():
        return LocalDirectoryError(str(path), "not_found")
    if not path.is_dir():
        return LocalDirectoryError(str(path), "not_directory")
    if not os.access(path, os.R_OK | os.X_OK):
        return LocalDirectoryError(str(path), "not_readable")
    return None
