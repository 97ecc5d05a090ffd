"""Orchestrator state machine.

Legal transitions:

    idle         -> initializing
    initializing -> connecting | error | idle
    connecting   -> watching | error | idle
    watching     -> syncing | error | idle
    syncing      -> watching | error
    error        -> recovering | idle
    recovering   -> watching | error | idle

Rejected transitions are logged and leave the state unchanged.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from watchsync.core.config import Profile
from watchsync.core.types import SyncState

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[SyncState, frozenset[SyncState]] = {
    SyncState.IDLE: frozenset({SyncState.INITIALIZING}),
    SyncState.INITIALIZING: frozenset({SyncState.CONNECTING, SyncState.ERROR, SyncState.IDLE}),
    SyncState.CONNECTING: frozenset({SyncState.WATCHING, SyncState.ERROR, SyncState.IDLE}),
    SyncState.WATCHING: frozenset({SyncState.SYNCING, SyncState.ERROR, SyncState.IDLE}),
    SyncState.SYNCING: frozenset({SyncState.WATCHING, SyncState.ERROR}),
    SyncState.ERROR: frozenset({SyncState.RECOVERING, SyncState.IDLE}),
    SyncState.RECOVERING: frozenset({SyncState.WATCHING, SyncState.ERROR, SyncState.IDLE}),
}

TransitionCallback = Callable[[SyncState, SyncState, Profile | None], None]


def can_transition(current: SyncState, target: SyncState) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


class StateMachine:
    """Holds the orchestrator state, active profile, last error and retries.

    The on_transition callback runs after each accepted transition, outside
    the internal lock.
    """

    def __init__(self, on_transition: TransitionCallback | None = None) -> None:
        self._lock = threading.RLock()
        self._state = SyncState.IDLE
        self._profile: Profile | None = None
        self._last_error: str | None = None
        self._retry_count = 0
        self._on_transition = on_transition

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def is_active(self) -> bool:
        """True in any state other than idle."""
        return self._state != SyncState.IDLE

    def set_profile(self, profile: Profile | None) -> None:
        with self._lock:
            self._profile = profile

    def transition(
        self,
        target: SyncState,
        error: str | None = None,
        profile: Profile | None = None,
    ) -> bool:
        """Move to a new state.

        Args:
            target: Requested state.
            error: Error message recorded when entering error.
            profile: Profile to make active (kept if None).

        Returns:
            True if the transition was applied, False if it was rejected.
        """
        with self._lock:
            old = self._state
            if not can_transition(old, target):
                logger.warning("Invalid state transition: %s -> %s", old.value, target.value)
                return False

            self._state = target
            if profile is not None:
                self._profile = profile

            if target == SyncState.WATCHING:
                self._retry_count = 0
            elif target == SyncState.RECOVERING:
                self._retry_count += 1
            elif target == SyncState.ERROR:
                self._last_error = error
            elif target == SyncState.IDLE:
                self._profile = None
                self._last_error = None
                self._retry_count = 0

            active_profile = self._profile

        logger.debug("State: %s -> %s", old.value, target.value)
        self._notify(old, target, active_profile)
        return True

    def reset(self) -> None:
        """Force the machine back to idle from any state."""
        with self._lock:
            old = self._state
            self._state = SyncState.IDLE
            self._profile = None
            self._last_error = None
            self._retry_count = 0

        if old != SyncState.IDLE:
            logger.debug("State: %s -> idle (reset)", old.value)
            self._notify(old, SyncState.IDLE, None)

    def _notify(self, old: SyncState, new: SyncState, profile: Profile | None) -> None:
        if self._on_transition is None:
            return
        try:
            self._on_transition(old, new, profile)
        except Exception:
            logger.exception("Error in state transition callback")
