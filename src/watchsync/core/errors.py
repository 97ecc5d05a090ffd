"""Error taxonomy for watchsync.

Every error carries a stable ``code`` and a ``recoverable`` flag. The
orchestrator uses the flag to decide between scheduling a recovery and
surfacing a terminal failure:

- configuration / prerequisite / authentication: terminal
- connection / timeout / watch process: recoverable
- transfer: depends on the rsync exit code (see RSYNC_EXIT_CODES)
"""

from __future__ import annotations

# rsync exit codes and their meanings
RSYNC_EXIT_CODES: dict[int, str] = {
    0: "Success",
    1: "Syntax or usage error",
    2: "Protocol incompatibility",
    3: "Errors selecting input/output files, dirs",
    4: "Requested action not supported",
    5: "Error starting client-server protocol",
    6: "Daemon unable to append to log-file",
    10: "Error in socket I/O",
    11: "Error in file I/O",
    12: "Error in rsync protocol data stream",
    13: "Errors with program diagnostics",
    14: "Error in IPC code",
    20: "Received SIGUSR1 or SIGINT",
    21: "Some error returned by waitpid()",
    22: "Error allocating core memory buffers",
    23: "Partial transfer due to error",
    24: "Partial transfer due to vanished source files",
    25: "The --max-delete limit stopped deletions",
    30: "Timeout in data send/receive",
    35: "Timeout waiting for daemon connection",
    255: "Remote shell connection failed",
}

# Exit codes worth retrying: transient network, partial transfers, timeouts
RECOVERABLE_EXIT_CODES = frozenset({10, 12, 23, 24, 30, 35, 255})


class WatchSyncError(Exception):
    """Base exception for watchsync errors."""

    code = "WATCHSYNC_ERROR"
    recoverable = False


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(WatchSyncError):
    """Profile configuration is missing fields or holds invalid values."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class ProfileNotFoundError(WatchSyncError):
    """No profile with the requested alias exists."""

    code = "PROFILE_NOT_FOUND"

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"Profile not found: {alias}")


class LocalDirectoryError(WatchSyncError):
    """Local directory is missing or unusable."""

    code = "LOCAL_DIRECTORY_ERROR"

    _MESSAGES = {
        "not_found": "Local directory does not exist: {path}",
        "not_directory": "Local path is not a directory: {path}",
        "not_readable": "Local directory is not readable: {path}",
    }

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(self._MESSAGES[reason].format(path=path))


class RemoteDirectoryError(WatchSyncError):
    """Remote directory is missing or not writable."""

    code = "REMOTE_DIRECTORY_ERROR"

    _MESSAGES = {
        "not_found": "Remote directory does not exist: {path}",
        "not_writable": "No write permission in remote directory: {path}",
    }

    def __init__(self, path: str, host: str, reason: str, detail: str | None = None) -> None:
        self.path = path
        self.host = host
        self.reason = reason
        message = self._MESSAGES[reason].format(path=path)
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class PrerequisiteError(WatchSyncError):
    """A required external tool is not installed."""

    code = "PREREQUISITE_MISSING"

    def __init__(self, tool: str, hint: str | None = None) -> None:
        self.tool = tool
        self.hint = hint
        message = f"{tool} is not installed or not in PATH"
        if hint:
            message += f" ({hint})"
        super().__init__(message)


# =============================================================================
# Connection errors
# =============================================================================


class RemoteConnectionError(WatchSyncError):
    """Remote host could not be reached."""

    code = "CONNECTION_ERROR"
    recoverable = True

    def __init__(self, host: str, port: int, message: str | None = None) -> None:
        self.host = host
        self.port = port
        super().__init__(message or f"Failed to connect to {host}:{port}")


class ConnectionTimeoutError(RemoteConnectionError):
    """Connecting to the remote host timed out."""

    code = "CONNECTION_TIMEOUT"

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(host, port, f"Connection to {host} timed out after {timeout:g}s")


class AuthenticationError(WatchSyncError):
    """Remote host rejected the supplied credentials."""

    code = "AUTHENTICATION_ERROR"

    def __init__(self, host: str, user: str, detail: str | None = None) -> None:
        self.host = host
        self.user = user
        message = f"Authentication failed for {user}@{host}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


# =============================================================================
# Transfer errors
# =============================================================================


class TransferError(WatchSyncError):
    """rsync exited with a non-zero status."""

    code = "TRANSFER_ERROR"

    def __init__(
        self,
        exit_code: int,
        stderr: str = "",
        recoverable: bool | None = None,
        message: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        if recoverable is None:
            recoverable = exit_code in RECOVERABLE_EXIT_CODES
        self.recoverable = recoverable
        super().__init__(
            message or f"rsync failed (exit code {exit_code}): {self.exit_code_description}"
        )

    @property
    def exit_code_description(self) -> str:
        return RSYNC_EXIT_CODES.get(self.exit_code, "Unknown error")


# =============================================================================
# Watcher errors
# =============================================================================


class WatcherProcessError(WatchSyncError):
    """inotifywait exited unexpectedly or could not be launched."""

    code = "WATCHER_PROCESS_ERROR"
    recoverable = True

    def __init__(self, exit_code: int, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"inotifywait process failed (exit code {exit_code}): {stderr}")


class WatchTargetError(WatchSyncError):
    """The watch target does not exist or is not a directory."""

    code = "WATCH_TARGET_ERROR"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Cannot watch path: {path}")


# =============================================================================
# Contract violations
# =============================================================================


class InvalidJobStateError(WatchSyncError):
    """A sync job lifecycle method was called in the wrong status."""

    code = "INVALID_JOB_STATE"

