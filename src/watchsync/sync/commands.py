"""rsync command construction.

Builders are pure: they turn a Profile (and a file list for incremental
runs) into a CommandSpec. Every value is a discrete argv entry, nothing is
ever interpolated into a shell string.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

from watchsync.core.config import Profile
from watchsync.sync.types import CommandSpec

RSYNC_PROGRAM = "rsync"


def build_ssh_command(profile: Profile) -> str:
    """Build the remote shell invocation passed to ``rsync -e``."""
    parts = [
        "ssh",
        "-p",
        str(profile.ssh_port),
        "-o",
        "StrictHostKeyChecking=accept-new",
    ]
    if profile.identity_file:
        parts.extend(["-i", os.path.expanduser(profile.identity_file)])
    return " ".join(parts)


def source_path(profile: Profile) -> str:
    """Local directory with a trailing separator (copy contents, not the dir)."""
    return profile.local_dir.rstrip("/") + "/"


def destination_path(profile: Profile) -> str:
    """Remote ``user@host:dir/`` destination."""
    return f"{profile.ssh_target}:{profile.remote_dir.rstrip('/')}/"


def relative_file_list(local_dir: str, files: Iterable[str]) -> list[str]:
    """Convert changed paths to paths relative to the local directory.

    Paths outside the directory (and the directory itself) are dropped.
    Duplicates are removed, first occurrence wins.
    """
    root = os.path.abspath(local_dir)
    seen: set[str] = set()
    result: list[str] = []
    for path in files:
        absolute = path if os.path.isabs(path) else os.path.join(root, path)
        relative = os.path.relpath(os.path.normpath(absolute), root)
        if relative == "." or relative == ".." or relative.startswith("../"):
            continue
        if relative not in seen:
            seen.add(relative)
            result.append(relative)
    return result


class TransferCommandBuilder:
    """Builds rsync invocations for a profile."""

    def __init__(self, program: str = RSYNC_PROGRAM) -> None:
        self._program = program

    def _base_args(self, profile: Profile) -> list[str]:
        args = ["-a", "-z", "--stats", "-e", build_ssh_command(profile)]
        for pattern in profile.exclude:
            args.extend(["--exclude", pattern])
        return args

    def build_full_sync(self, profile: Profile) -> CommandSpec:
        """Mirror the whole local tree; remote entries absent locally are deleted."""
        args = self._base_args(profile)
        args.append("--delete")
        args.extend([source_path(profile), destination_path(profile)])
        return CommandSpec(program=self._program, args=tuple(args))

    def build_incremental_sync(self, profile: Profile, files: Iterable[str]) -> CommandSpec:
        """Transfer only the given paths, read by rsync from stdin.

        Falls back to a full sync when no usable paths remain.
        """
        relative = relative_file_list(profile.local_dir, files)
        if not relative:
            return self.build_full_sync(profile)

        args = self._base_args(profile)
        # Missing paths are deletions (or move sources) and must be removed
        # remotely; --force lets that include non-empty directories
        args.extend(["-r", "--delete-missing-args", "--force", "--files-from=-"])
        args.extend([source_path(profile), destination_path(profile)])
        return CommandSpec(
            program=self._program,
            args=tuple(args),
            cwd=profile.local_dir,
            stdin="\n".join(relative) + "\n",
        )

    def build_dry_run(self, profile: Profile) -> CommandSpec:
        """Preview a full sync without changing anything."""
        args = self._base_args(profile)
        args.extend(["--dry-run", "--delete", "-v"])
        args.extend([source_path(profile), destination_path(profile)])
        return CommandSpec(program=self._program, args=tuple(args))
