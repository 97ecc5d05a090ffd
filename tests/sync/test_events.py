"""Tests for the event bus."""

from __future__ import annotations

import pytest

from watchsync.core.types import SyncState
from watchsync.sync.events import ErrorRaised, EventBus, FilesChanged, StateChanged


class TestEventBus:
    """Tests for EventBus."""

    def test_untyped_subscriber_gets_everything(self) -> None:
        """Should deliver every event to a handler without types."""
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        bus.publish(FilesChanged(("/a",)))
        bus.publish(ErrorRaised("x", recoverable=True))
        assert len(received) == 2

    def test_typed_subscriber_filters(self) -> None:
        """Should only deliver the requested types."""
        bus = EventBus()
        received = []
        bus.subscribe(received.append, StateChanged)

        bus.publish(FilesChanged(("/a",)))
        bus.publish(StateChanged(SyncState.IDLE, SyncState.INITIALIZING))
        assert received == [StateChanged(SyncState.IDLE, SyncState.INITIALIZING)]

    def test_unsubscribe(self) -> None:
        """Should stop delivery after unsubscribing, and tolerate repeats."""
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        bus.publish(FilesChanged(("/a",)))
        assert received == []

    def test_failing_handler_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        """Should keep delivering when one handler raises."""
        bus = EventBus()
        received = []

        def broken(event: object) -> None:
            raise RuntimeError("handler bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(FilesChanged(("/a",)))

        assert len(received) == 1
        assert "Error in FilesChanged handler" in caplog.text

    def test_clear(self) -> None:
        """Should drop all subscribers."""
        bus = EventBus()
        received = []
        bus.subscribe(received.append)
        bus.clear()
        bus.publish(FilesChanged(()))
        assert received == []
