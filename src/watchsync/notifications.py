"""Desktop notifications for watchsync.

Used by `watch` to tell the operator that syncing stopped for good, since
the terminal running it is usually in the background. Linux goes through
notify-send, macOS through osascript; other platforms are silent.
"""

from __future__ import annotations

import logging
import platform
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from watchsync.sync.events import ErrorRaised, EventBus, SyncEvent

logger = logging.getLogger(__name__)

APP_NAME = "watchsync"
STOPPED_TITLE = "watchsync - Sync stopped"


class Urgency(str, Enum):
    """notify-send urgency levels."""

    LOW = "low"
    NORMAL = "normal"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DesktopNotification:
    title: str
    body: str
    urgency: Urgency = Urgency.NORMAL


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def notification_command(note: DesktopNotification, system: str) -> list[str] | None:
    """argv that shows the notification on this platform, or None."""
    if system == "Linux":
        return [
            "notify-send",
            "--urgency", note.urgency.value,
            "--app-name", APP_NAME,
            note.title,
            note.body,
        ]
    if system == "Darwin":
        script = (
            f"display notification {_applescript_string(note.body)} "
            f"with title {_applescript_string(note.title)}"
        )
        return ["osascript", "-e", script]
    return None


def send_notification(note: DesktopNotification) -> bool:
    """Show a desktop notification.

    Returns:
        True if the notifier ran successfully.
    """
    system = platform.system()
    argv = notification_command(note, system)
    if argv is None:
        logger.debug("Notifications not supported on %s", system)
        return False

    try:
        subprocess.run(argv, capture_output=True, check=True)
    except FileNotFoundError:
        logger.debug("%s not found, notification skipped", argv[0])
        return False
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug("Notification via %s failed: %s", argv[0], e)
        return False
    return True


def notify_error(message: str) -> bool:
    return send_notification(DesktopNotification(STOPPED_TITLE, message, Urgency.CRITICAL))


def attach_notifications(
    bus: EventBus,
    notifier: Callable[[str], bool] = notify_error,
) -> Callable[[], None]:
    """Notify on failures that will not be retried.

    Returns:
        Callable removing the subscription.
    """

    def on_error(event: SyncEvent) -> None:
        if isinstance(event, ErrorRaised) and not event.recoverable:
            notifier(event.message)

    return bus.subscribe(on_error, ErrorRaised)
