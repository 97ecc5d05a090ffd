"""Sync orchestrator: the lifecycle of one watched profile.

This module provides:
- SyncOrchestrator: Drives validation, the initial full sync, incremental
  syncs for change batches, and recovery after failures

Lifecycle:
    start(profile)
        idle -> initializing   validate profile, check inotifywait/rsync
             -> connecting     SSH connectivity test, one full sync
             -> watching       change aggregator running

    change batch while watching
        watching -> syncing -> watching        success
        watching -> syncing -> error           failure
                 -> recovering -> watching     recoverable, within budget

Only one sync runs at a time. Batches that arrive while a sync is running
(or while in error/recovering) are held and merged; held paths are synced
right after the next successful sync or recovery. Paths of a failed sync
are kept and merged into the next batch until they have failed more than
max_retries times, then dropped.

The lock guards state decisions only; it is never held while rsync, an SSH
connection or an event observer runs. State changes made under the lock are
published once it is released.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol

from watchsync.core.config import OrchestratorSettings, Profile
from watchsync.core.errors import (
    AuthenticationError,
    PrerequisiteError,
    WatchSyncError,
)
from watchsync.core.types import SyncState
from watchsync.core.validation import (
    expand_local_dir,
    resolve_workspace_folder,
    validate_profile,
)
from watchsync.remote.askpass import AskpassHelper
from watchsync.sync.events import (
    ErrorRaised,
    EventBus,
    FilesChanged,
    StateChanged,
    SyncCompleted,
    SyncFailed,
    SyncStarted,
)
from watchsync.sync.process import INSTALL_HINT, command_exists, missing_tools
from watchsync.sync.state import StateMachine
from watchsync.sync.strategy import SyncService, result_error
from watchsync.sync.watcher import ChangeAggregator

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from watchsync.core.errors import WatcherProcessError
    from watchsync.remote.session import ConnectionResult
    from watchsync.sync.types import ChangeEvent

logger = logging.getLogger(__name__)


class SessionValidator(Protocol):
    """Connectivity checks against the remote host."""

    def test_connection(self, profile: Profile) -> ConnectionResult: ...

    def set_password(self, password: str | None) -> None: ...


class ChangeSource(Protocol):
    """Delivers debounced change batches for a directory."""

    @property
    def is_running(self) -> bool: ...

    def start(
        self,
        target_path: str,
        exclude_patterns: Iterable[str] = (),
        quiet_window_ms: int = 200,
    ) -> None: ...

    def stop(self) -> None: ...

    def set_on_batch(self, callback: Callable[[list[ChangeEvent]], None] | None) -> None: ...

    def set_on_fault(self, callback: Callable[[WatcherProcessError], None] | None) -> None: ...


class PasswordSource(Protocol):
    """Stored passwords plus an interactive fallback."""

    def get(self, host: str, user: str) -> str | None: ...

    def prompt_and_optionally_store(self, host: str, user: str) -> str | None: ...


class SyncOrchestrator:
    """Keeps one local directory mirrored to its remote counterpart.

    Usage:
        orchestrator = SyncOrchestrator(RemoteSession())
        orchestrator.bus.subscribe(print)
        if not orchestrator.start(profile):
            print(orchestrator.last_failure)
        ...
        orchestrator.close()
    """

    def __init__(
        self,
        session: SessionValidator,
        service: SyncService | None = None,
        aggregator: ChangeSource | None = None,
        settings: OrchestratorSettings | None = None,
        bus: EventBus | None = None,
        askpass: AskpassHelper | None = None,
        tool_check: Callable[[str], bool] = command_exists,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            session: Connectivity checker (RemoteSession).
            service: Runs sync jobs.
            aggregator: Source of change batches.
            settings: Timing and retry settings.
            bus: Event channel observers subscribe to.
            askpass: Password hand-off helper for rsync's ssh.
            tool_check: Predicate telling whether a program is on PATH.
        """
        self.settings = settings or OrchestratorSettings()
        self.bus = bus or EventBus()
        self._session = session
        self._service = service or SyncService(settings=self.settings)
        self._aggregator: ChangeSource = aggregator or ChangeAggregator(
            kill_grace=self.settings.kill_grace_s
        )
        self._askpass = askpass or AskpassHelper()
        self._tool_check = tool_check

        self._machine = StateMachine(on_transition=self._on_state_changed)
        self._lock = threading.RLock()
        self._lock_depth = 0
        # StateChanged events waiting for the lock to be released
        self._queued_events: deque[StateChanged] = deque()
        self._publish_lock = threading.RLock()

        # Changed paths waiting for a sync, in arrival order
        self._pending: dict[str, None] = {}
        # Failed sync attempts per path, cleared when the path syncs
        self._failed_attempts: dict[str, int] = {}
        self._sync_running = False
        self._run_id = 0
        self._stopping = False

        self._recovery_timer: threading.Timer | None = None
        self._recovery_token = 0

        self.last_failure: WatchSyncError | None = None

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return self._machine.state

    @property
    def profile(self) -> Profile | None:
        return self._machine.profile

    @property
    def retry_count(self) -> int:
        return self._machine.retry_count

    @property
    def last_error(self) -> str | None:
        return self._machine.last_error

    @property
    def machine(self) -> StateMachine:
        return self._machine

    @property
    def service(self) -> SyncService:
        return self._service

    @property
    def pending_paths(self) -> list[str]:
        with self._state_lock():
            return list(self._pending)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def set_password(self, password: str | None) -> None:
        """Use a password for the SSH session and for rsync's ssh."""
        self._session.set_password(password)
        if password:
            self._service.executor.set_env(self._askpass.environment(password))
        else:
            self._service.executor.set_env(None)

    def start(self, profile: Profile, workspace_folder: str | Path | None = None) -> bool:
        """Validate, connect, run a full sync and begin watching.

        Returns:
            True if the orchestrator is watching. On False, last_failure
            holds the error and the state is error (or idle if stopped).
        """
        if self._machine.is_active:
            logger.info("Stopping active session before starting %s", profile.alias)
            self.stop()

        with self._state_lock():
            self._stopping = False
            self._run_id += 1
            self._pending.clear()
            self._failed_attempts.clear()
            self._sync_running = False
            self.last_failure = None
            if not self._machine.transition(SyncState.INITIALIZING, profile=profile):
                return False

        try:
            active = self._prepare_profile(profile, workspace_folder)
            self._check_prerequisites()

            if not self._advance(SyncState.CONNECTING):
                return False
            self._check_connection(active)
            self._initial_sync(active)

            if not self._advance(SyncState.WATCHING):
                return False
            self._start_aggregator(active)
        except WatchSyncError as e:
            self._fail_start(e)
            return False

        logger.info("Watching %s -> %s", active.local_dir, active.ssh_target)
        return True

    def start_authenticated(
        self,
        profile: Profile,
        credentials: PasswordSource,
        workspace_folder: str | Path | None = None,
    ) -> bool:
        """Start, asking for a password once if authentication fails."""
        host, user = profile.remote_host, profile.remote_user

        stored = credentials.get(host, user)
        if stored:
            self.set_password(stored)

        if self.start(profile, workspace_folder):
            return True
        if not isinstance(self.last_failure, AuthenticationError):
            return False

        logger.info("Authentication failed for %s, asking for a password", profile.ssh_target)
        password = credentials.prompt_and_optionally_store(host, user)
        if password is None:
            logger.info("No password supplied; not starting %s", profile.alias)
            return False

        self.set_password(password)
        return self.start(profile, workspace_folder)

    def stop(self) -> None:
        """Stop watching and return to idle from any state.

        A transfer that is already running is left to finish.
        """
        with self._state_lock():
            self._stopping = True
            self._run_id += 1
            self._cancel_recovery_locked()

        self._aggregator.stop()

        with self._state_lock():
            self._pending.clear()
            self._failed_attempts.clear()
            self._sync_running = False
            self._machine.reset()
        logger.info("Sync stopped")

    def close(self) -> None:
        """Stop and release the askpass helper."""
        self.stop()
        self._askpass.cleanup()

    # =========================================================================
    # Start steps
    # =========================================================================

    def _advance(self, target: SyncState) -> bool:
        with self._state_lock():
            if self._stopping:
                return False
            return self._machine.transition(target)

    def _prepare_profile(self, profile: Profile, workspace_folder: str | Path | None) -> Profile:
        resolved = expand_local_dir(resolve_workspace_folder(profile, workspace_folder))

        validation = validate_profile(resolved)
        error = validation.to_error()
        if error is not None:
            raise error

        self._machine.set_profile(resolved)
        return resolved

    def _check_prerequisites(self) -> None:
        missing = missing_tools(exists=self._tool_check)
        if missing:
            raise PrerequisiteError(", ".join(missing), INSTALL_HINT)

    def _check_connection(self, profile: Profile) -> None:
        result = self._session.test_connection(profile)
        if not result.success:
            error = result.to_error(profile)
            if error is not None:
                raise error
        logger.info("Connected to %s (%.0fms)", profile.ssh_target, result.latency_ms or 0)

    def _initial_sync(self, profile: Profile) -> None:
        job = self._service.create_full_job(profile)
        self.bus.publish(SyncStarted(job))
        result = self._service.sync(job)
        if not result.success:
            self.bus.publish(SyncFailed(job, result.error_message))
            raise result_error(result)
        self.bus.publish(SyncCompleted(job, result))

    def _start_aggregator(self, profile: Profile) -> None:
        self._aggregator.set_on_batch(self._on_batch)
        self._aggregator.set_on_fault(self._on_watcher_fault)
        self._aggregator.start(profile.local_dir, profile.exclude, self.settings.quiet_window_ms)

    def _fail_start(self, error: WatchSyncError) -> None:
        with self._state_lock():
            self.last_failure = error
            if self._stopping:
                return
            self._machine.transition(SyncState.ERROR, error=str(error))
        logger.error("Could not start sync: %s", error)
        self.bus.publish(
            ErrorRaised(
                message=str(error),
                recoverable=False,
                retry_count=self._machine.retry_count,
                max_retries=self.settings.max_retries,
            )
        )

    # =========================================================================
    # Change batches
    # =========================================================================

    def handle_batch(self, paths: Iterable[str]) -> None:
        """Queue changed paths and sync them if the orchestrator is idle-watching."""
        ordered = list(dict.fromkeys(paths))
        if not ordered:
            return

        with self._state_lock():
            if self._stopping or not self._machine.is_active:
                return
            run_id = self._run_id

        self.bus.publish(FilesChanged(tuple(ordered)))

        with self._state_lock():
            if self._stopping or run_id != self._run_id:
                return
            for path in ordered:
                self._pending[path] = None
            files = self._claim_pending_locked()

        if files:
            self._run_incremental(files, run_id)

    def _on_batch(self, events: list[ChangeEvent]) -> None:
        self.handle_batch(path for event in events for path in event.affected_paths)

    def _claim_pending_locked(self) -> list[str]:
        """Take all pending paths if a sync may start now."""
        if not self._pending:
            return []
        if self._sync_running or self._machine.state != SyncState.WATCHING:
            logger.debug(
                "Holding %d changed paths while %s", len(self._pending), self._machine.state.value
            )
            return []
        if not self._machine.transition(SyncState.SYNCING):
            return []
        files = list(self._pending)
        self._pending.clear()
        self._sync_running = True
        return files

    def _run_incremental(self, files: list[str], run_id: int) -> None:
        while files:
            profile = self._machine.profile
            if profile is None:
                return

            job = self._service.create_incremental_job(profile, files)
            self.bus.publish(SyncStarted(job))
            result = self._service.sync(job)

            if not result.success:
                self.bus.publish(SyncFailed(job, result.error_message))
                with self._state_lock():
                    if run_id != self._run_id:
                        return
                    self._sync_running = False
                    # Failed paths go first, then whatever arrived meanwhile
                    merged = dict.fromkeys(self._retain_failed_locked(files))
                    merged.update(self._pending)
                    self._pending = merged
                self._handle_failure(result_error(result))
                return

            self.bus.publish(SyncCompleted(job, result))
            with self._state_lock():
                if run_id != self._run_id:
                    return
                for path in files:
                    self._failed_attempts.pop(path, None)
                self._sync_running = False
                # A watcher fault may have moved us to error meanwhile
                if self._machine.state != SyncState.SYNCING:
                    return
                self._machine.transition(SyncState.WATCHING)
                if self._stopping:
                    return
                files = self._claim_pending_locked()

    def _retain_failed_locked(self, files: list[str]) -> list[str]:
        """Count a failed sync against each path; return those worth retrying."""
        retained: list[str] = []
        dropped: list[str] = []
        for path in files:
            attempts = self._failed_attempts.get(path, 0) + 1
            if attempts > self.settings.max_retries:
                self._failed_attempts.pop(path, None)
                dropped.append(path)
            else:
                self._failed_attempts[path] = attempts
                retained.append(path)
        if dropped:
            logger.error(
                "Giving up on %d paths after %d failed syncs: %s",
                len(dropped),
                self.settings.max_retries + 1,
                ", ".join(dropped),
            )
        return retained

    # =========================================================================
    # Failures and recovery
    # =========================================================================

    def _on_watcher_fault(self, error: WatcherProcessError) -> None:
        logger.error("Change watcher failed: %s", error)
        self._handle_failure(error)

    def _handle_failure(self, error: WatchSyncError) -> None:
        with self._state_lock():
            if self._stopping:
                return
            if self._machine.state == SyncState.ERROR:
                logger.debug("Already in error, ignoring: %s", error)
                return
            if not self._machine.transition(SyncState.ERROR, error=str(error)):
                return
            self.last_failure = error
            retry_count = self._machine.retry_count
            will_retry = error.recoverable and retry_count < self.settings.max_retries
            if will_retry:
                self._schedule_recovery_locked()

        if will_retry:
            logger.warning(
                "%s; recovering in %gs (attempt %d/%d)",
                error,
                self.settings.recovery_delay_s,
                retry_count + 1,
                self.settings.max_retries,
            )
        elif error.recoverable:
            logger.error("%s; giving up after %d recovery attempts", error, retry_count)
        else:
            logger.error("%s", error)

        self.bus.publish(
            ErrorRaised(
                message=str(error),
                recoverable=will_retry,
                retry_count=retry_count,
                max_retries=self.settings.max_retries,
            )
        )

    def _schedule_recovery_locked(self) -> None:
        self._cancel_recovery_locked()
        self._recovery_token += 1
        timer = threading.Timer(
            self.settings.recovery_delay_s,
            self._recover,
            args=(self._recovery_token,),
        )
        timer.daemon = True
        self._recovery_timer = timer
        timer.start()

    def _cancel_recovery_locked(self) -> None:
        if self._recovery_timer is not None:
            self._recovery_timer.cancel()
            self._recovery_timer = None
        self._recovery_token += 1

    def _recover(self, token: int) -> None:
        with self._state_lock():
            if self._stopping or token != self._recovery_token:
                return
            self._recovery_timer = None
            if not self._machine.transition(SyncState.RECOVERING):
                return
            profile = self._machine.profile
            attempt = self._machine.retry_count

        if profile is None:
            return
        logger.info("Recovery attempt %d/%d", attempt, self.settings.max_retries)

        try:
            if self.settings.revalidate_on_recovery:
                self._check_connection(profile)
            if not self._aggregator.is_running:
                self._start_aggregator(profile)
        except WatchSyncError as e:
            self._handle_failure(e)
            return

        with self._state_lock():
            if self._stopping or self._machine.state != SyncState.RECOVERING:
                return
            self._machine.transition(SyncState.WATCHING)
            run_id = self._run_id
            files = self._claim_pending_locked()
        logger.info("Recovered, watching %s", profile.local_dir)

        if files:
            self._run_incremental(files, run_id)

    # =========================================================================
    # Events
    # =========================================================================

    @contextmanager
    def _state_lock(self) -> Iterator[None]:
        """Hold the lock for a state decision.

        State changes made meanwhile are published after the outermost
        holder releases the lock, in the order they happened.
        """
        outermost = False
        try:
            with self._lock:
                self._lock_depth += 1
                try:
                    yield
                finally:
                    self._lock_depth -= 1
                    outermost = self._lock_depth == 0
        finally:
            if outermost:
                self._publish_queued()

    def _publish_queued(self) -> None:
        while True:
            # One thread delivers at a time; others leave their events to it
            if not self._publish_lock.acquire(blocking=False):
                return
            try:
                while True:
                    with self._lock:
                        if not self._queued_events:
                            break
                        event = self._queued_events.popleft()
                    self.bus.publish(event)
            finally:
                self._publish_lock.release()

            # Events queued while the lock was being released
            with self._lock:
                if not self._queued_events:
                    return

    def _on_state_changed(
        self, old: SyncState, new: SyncState, profile: Profile | None
    ) -> None:
        event = StateChanged(old_state=old, new_state=new, profile=profile)
        if self._lock_depth:
            self._queued_events.append(event)
        else:
            self.bus.publish(event)
