"""Core module - Shared types, errors, configuration and logging."""

from watchsync.core.config import DEFAULT_SSH_PORT, OrchestratorSettings, Profile
from watchsync.core.errors import (
    RSYNC_EXIT_CODES,
    AuthenticationError,
    ConfigurationError,
    ConnectionTimeoutError,
    InvalidJobStateError,
    LocalDirectoryError,
    PrerequisiteError,
    ProfileNotFoundError,
    RemoteConnectionError,
    RemoteDirectoryError,
    TransferError,
    WatcherProcessError,
    WatchSyncError,
    WatchTargetError,
)
from watchsync.core.types import (
    ChangeKind,
    ConflictPolicy,
    JobStatus,
    SyncDirection,
    SyncState,
    SyncStrategy,
)
from watchsync.core.validation import ValidationResult, validate_profile

__all__ = [
    # Config
    "DEFAULT_SSH_PORT",
    "OrchestratorSettings",
    "Profile",
    # Errors
    "RSYNC_EXIT_CODES",
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionTimeoutError",
    "InvalidJobStateError",
    "LocalDirectoryError",
    "PrerequisiteError",
    "ProfileNotFoundError",
    "RemoteConnectionError",
    "RemoteDirectoryError",
    "TransferError",
    "WatchSyncError",
    "WatcherProcessError",
    "WatchTargetError",
    # Types
    "ChangeKind",
    "ConflictPolicy",
    "JobStatus",
    "SyncDirection",
    "SyncState",
    "SyncStrategy",
    # Validation
    "ValidationResult",
    "validate_profile",
]
