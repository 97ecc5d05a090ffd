"""Shared enums for watchsync.

This module defines the value types used across the sync engine,
the remote layer and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """State of the sync orchestrator."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    WATCHING = "watching"
    SYNCING = "syncing"
    ERROR = "error"
    RECOVERING = "recovering"


class SyncDirection(str, Enum):
    """Direction of a profile.

    Only LOCAL_TO_REMOTE is carried out; the other values are accepted
    in configuration so profiles written for them still load.
    """

    LOCAL_TO_REMOTE = "localToRemote"
    REMOTE_TO_LOCAL = "remoteToLocal"
    BIDIRECTIONAL = "bidirectional"


class ConflictPolicy(str, Enum):
    """Conflict resolution policy (local is always authoritative)."""

    LOCAL_WINS = "localWins"


class ChangeKind(str, Enum):
    """Kind of filesystem change reported by the watcher."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MOVE = "move"


class SyncStrategy(str, Enum):
    """How a sync job transfers files."""

    FULL = "full"
    INCREMENTAL = "incremental"


class JobStatus(str, Enum):
    """Lifecycle status of a sync job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
