"""Shared types and dataclasses for sync operations.

This module provides:
- ChangeEvent: One filesystem change parsed from the watch process
- SyncJob: A single transfer with a strict pending -> running -> done lifecycle
- SyncResult: Snapshot of a finished job handed to observers
- CommandSpec, TransferOutcome, ExitCodeInfo, DryRunResult: Transfer plumbing
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from watchsync.core.config import Profile
from watchsync.core.errors import InvalidJobStateError
from watchsync.core.types import ChangeKind, JobStatus, SyncStrategy

# =============================================================================
# Change events
# =============================================================================


def parse_watch_kind(event_names: str) -> ChangeKind | None:
    """Map an inotifywait event list (e.g. ``CLOSE_WRITE,CLOSE``) to a kind."""
    upper = event_names.upper()
    if "CLOSE_WRITE" in upper or "MODIFY" in upper:
        return ChangeKind.MODIFY
    if "CREATE" in upper:
        return ChangeKind.CREATE
    if "DELETE" in upper:
        return ChangeKind.DELETE
    if "MOVE" in upper:
        return ChangeKind.MOVE
    return None


@dataclass(frozen=True)
class ChangeEvent:
    """A filesystem change reported by the watcher.

    Attributes:
        kind: What happened to the path.
        path: Absolute path that changed.
        timestamp: Unix timestamp when the event was received.
        old_path: Source path for a move, when it is known.
        is_directory: True if the path is a directory.
    """

    kind: ChangeKind
    path: str
    timestamp: float = field(default_factory=time.time)
    old_path: str | None = None
    is_directory: bool = False

    @classmethod
    def from_watch_line(cls, line: str) -> ChangeEvent | None:
        """Parse a ``"<EVENTS> <path>"`` line.

        Returns:
            The event, or None if the line is malformed or the event unknown.
        """
        parts = line.strip().split(maxsplit=1)
        if len(parts) != 2:
            return None
        event_names, path = parts
        kind = parse_watch_kind(event_names)
        if kind is None:
            return None
        return cls(
            kind=kind,
            path=path,
            is_directory="ISDIR" in event_names.upper(),
        )

    @property
    def affected_paths(self) -> list[str]:
        """Paths touched by this event (both ends of a move)."""
        if self.kind == ChangeKind.MOVE and self.old_path:
            return [self.path, self.old_path]
        return [self.path]


# =============================================================================
# Sync jobs
# =============================================================================


def generate_job_id() -> str:
    """Create a unique sync job id."""
    return f"sync_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class SyncJob:
    """A single synchronization run for a profile.

    Status moves strictly pending -> running -> completed|failed. Calling
    a lifecycle method out of order raises InvalidJobStateError.
    """

    def __init__(
        self,
        profile: Profile,
        files: list[str] | tuple[str, ...] | None = None,
        strategy: SyncStrategy | None = None,
        job_id: str | None = None,
    ) -> None:
        self.id = job_id or generate_job_id()
        self.profile = profile
        self.files: tuple[str, ...] = tuple(files or ())
        if strategy is None:
            strategy = SyncStrategy.INCREMENTAL if self.files else SyncStrategy.FULL
        self.strategy = strategy
        self.created_at = datetime.now(UTC)

        self._status = JobStatus.PENDING
        self._started_at: float | None = None
        self._completed_at: float | None = None
        self._error: str | None = None
        self._files_transferred = 0
        self._bytes_transferred = 0

    @property
    def status(self) -> JobStatus:
        return self._status

    @property
    def started_at(self) -> float | None:
        return self._started_at

    @property
    def completed_at(self) -> float | None:
        return self._completed_at

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def files_transferred(self) -> int:
        return self._files_transferred

    @property
    def bytes_transferred(self) -> int:
        return self._bytes_transferred

    @property
    def duration(self) -> float:
        """Seconds spent running (so far, if still running)."""
        if self._started_at is None:
            return 0.0
        end = self._completed_at if self._completed_at is not None else time.monotonic()
        return end - self._started_at

    def start(self) -> None:
        """Mark the job as running."""
        if self._status != JobStatus.PENDING:
            raise InvalidJobStateError(f"Cannot start job in {self._status.value} status")
        self._status = JobStatus.RUNNING
        self._started_at = time.monotonic()

    def complete(self, files_transferred: int, bytes_transferred: int) -> None:
        """Mark the job as completed successfully."""
        if self._status != JobStatus.RUNNING:
            raise InvalidJobStateError(f"Cannot complete job in {self._status.value} status")
        self._status = JobStatus.COMPLETED
        self._completed_at = time.monotonic()
        self._files_transferred = files_transferred
        self._bytes_transferred = bytes_transferred

    def fail(self, error: str) -> None:
        """Mark the job as failed."""
        if self._status != JobStatus.RUNNING:
            raise InvalidJobStateError(f"Cannot fail job in {self._status.value} status")
        self._status = JobStatus.FAILED
        self._completed_at = time.monotonic()
        self._error = error

    def __repr__(self) -> str:
        return (
            f"SyncJob({self.id}, {self.strategy.value}, "
            f"files={len(self.files)}, status={self._status.value})"
        )


@dataclass(frozen=True)
class SyncResult:
    """Result of a sync job.

    Attributes:
        success: True if the transfer finished cleanly.
        job_id: Id of the job this result belongs to.
        files_transferred: Files rsync reported as transferred.
        bytes_transferred: Bytes rsync reported as transferred.
        duration: Seconds the job took.
        errors: Human-readable error lines (empty on success).
        exit_code: rsync exit code, if rsync ran.
        recoverable: Whether a failure is worth retrying.
    """

    success: bool
    job_id: str
    files_transferred: int = 0
    bytes_transferred: int = 0
    duration: float = 0.0
    errors: tuple[str, ...] = ()
    exit_code: int | None = None
    recoverable: bool = True

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)


# =============================================================================
# Transfer plumbing
# =============================================================================


@dataclass(frozen=True)
class CommandSpec:
    """An external process invocation (argument vector, never a shell string).

    Attributes:
        program: Executable name.
        args: Arguments passed as discrete argv entries.
        cwd: Working directory for the process.
        stdin: Text written to the process's standard input.
    """

    program: str
    args: tuple[str, ...]
    cwd: str | None = None
    stdin: str | None = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


@dataclass(frozen=True)
class TransferOutcome:
    """Raw outcome of running the mirroring tool."""

    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False


@dataclass(frozen=True)
class ExitCodeInfo:
    """Classification of an rsync exit code."""

    code: int
    description: str
    recoverable: bool


@dataclass
class DryRunResult:
    """What a full sync would change."""

    files_to_transfer: list[str] = field(default_factory=list)
    files_to_delete: list[str] = field(default_factory=list)
