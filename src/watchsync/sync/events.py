"""Observable sync events.

All notifications travel through one EventBus as frozen dataclasses.
Subscribers pick the event types they care about:

    bus = EventBus()
    unsubscribe = bus.subscribe(on_state, StateChanged)
    bus.subscribe(on_anything)  # every event
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from watchsync.core.config import Profile
from watchsync.core.types import SyncState
from watchsync.sync.types import SyncJob, SyncResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChanged:
    old_state: SyncState
    new_state: SyncState
    profile: Profile | None = None


@dataclass(frozen=True)
class SyncStarted:
    job: SyncJob


@dataclass(frozen=True)
class SyncCompleted:
    job: SyncJob
    result: SyncResult


@dataclass(frozen=True)
class SyncFailed:
    job: SyncJob
    error: str


@dataclass(frozen=True)
class FilesChanged:
    paths: tuple[str, ...]


@dataclass(frozen=True)
class ErrorRaised:
    """A failure surfaced to the operator.

    Attributes:
        message: Human-readable description.
        recoverable: True if a recovery attempt is scheduled.
        retry_count: Recovery attempts so far.
        max_retries: Recovery budget.
    """

    message: str
    recoverable: bool
    retry_count: int = 0
    max_retries: int = 0


SyncEvent = StateChanged | SyncStarted | SyncCompleted | SyncFailed | FilesChanged | ErrorRaised
EventHandler = Callable[[SyncEvent], None]


class EventBus:
    """Synchronous dispatcher for sync events.

    Handlers run on the publishing thread. A failing handler is logged and
    does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[tuple[EventHandler, tuple[type, ...]]] = []

    def subscribe(self, handler: EventHandler, *event_types: type) -> Callable[[], None]:
        """Register a handler, optionally restricted to some event types.

        Returns:
            A callable that removes the subscription.
        """
        entry = (handler, tuple(event_types))
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: SyncEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for handler, event_types in subscribers:
            if event_types and not isinstance(event, event_types):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Error in %s handler", type(event).__name__)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
