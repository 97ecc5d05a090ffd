"""Sync module - Change watching, rsync transfers and orchestration.

This module provides:
- ChangeAggregator: Debounced change batches from inotifywait
- ExclusionMatcher: Profile exclude patterns
- TransferCommandBuilder / TransferExecutor: rsync invocation and results
- SyncService: Strategy selection and job execution
- StateMachine / SyncOrchestrator: Lifecycle, retries and recovery
- EventBus: Observable events for front ends
"""

from watchsync.sync.commands import TransferCommandBuilder
from watchsync.sync.coordinator import SyncOrchestrator
from watchsync.sync.events import (
    ErrorRaised,
    EventBus,
    FilesChanged,
    StateChanged,
    SyncCompleted,
    SyncEvent,
    SyncFailed,
    SyncStarted,
)
from watchsync.sync.executor import TransferExecutor, classify_exit_code
from watchsync.sync.ignore import ExclusionMatcher
from watchsync.sync.state import VALID_TRANSITIONS, StateMachine
from watchsync.sync.strategy import SyncService, build_command, select_strategy
from watchsync.sync.types import (
    ChangeEvent,
    CommandSpec,
    DryRunResult,
    SyncJob,
    SyncResult,
    TransferOutcome,
)
from watchsync.sync.watcher import ChangeAggregator

__all__ = [
    # Orchestration
    "SyncOrchestrator",
    "StateMachine",
    "VALID_TRANSITIONS",
    # Events
    "ErrorRaised",
    "EventBus",
    "FilesChanged",
    "StateChanged",
    "SyncCompleted",
    "SyncEvent",
    "SyncFailed",
    "SyncStarted",
    # Transfers
    "SyncService",
    "TransferCommandBuilder",
    "TransferExecutor",
    "build_command",
    "classify_exit_code",
    "select_strategy",
    # Watching
    "ChangeAggregator",
    "ExclusionMatcher",
    # Types
    "ChangeEvent",
    "CommandSpec",
    "DryRunResult",
    "SyncJob",
    "SyncResult",
    "TransferOutcome",
]
