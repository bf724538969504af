"""
Notification bus for Cadence.

Notifications are fire-and-forget descriptions of state changes, raised by the
command dispatcher and by media engine callbacks:

- Server: startup, shutdown, engine progress messages
- Transport: stopped, paused, new stream, stream finished, playlist finished,
  position changed, seek
- Playlist: contents changed
- Audio: volume changed

No transport is attached by default; every notification is logged at DEBUG
level, and listeners can be subscribed for future delivery mechanisms
(multicast, webhooks, ...).

`notify()` may be called from the request worker thread or from the engine's
event thread, often while the playback lock is held. It therefore never raises
and never waits on anything but the bus's own short-lived lock. Listeners run
synchronously on the caller's thread and must return promptly.

Usage:
    notifier = Notifier()

    def on_notification(notification: Notification) -> None:
        print(notification.format())

    notifier.subscribe(on_notification)
    notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PLAYBACK_STOPPED, MSG_STOPPED_PLAYBACK)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable

logger = logging.getLogger(__name__)

MSG_SERVER_STARTUP = "Server startup"
MSG_SERVER_SHUTDOWN = "Server shutdown"
MSG_STOPPED_PLAYBACK = "Stopped playback"
MSG_PAUSED_PLAYBACK = "Paused playback"
MSG_CHANGED_PL_POSITION = "Changed position in playlist"
MSG_PL_CHANGED = "Playlist contents changed"
MSG_VOLUME_CHANGED = "Volume changed"
MSG_SEEK = "Playback position changed"
MSG_NEW_STREAM = "Playing new stream"
MSG_STREAM_FINISHED = "Finished stream"
MSG_PL_FINISHED = "Finished playlist"


class NotifyClass(IntEnum):
    """Broad category of a notification."""

    SERVER = 1
    TRANSPORT = 2
    PLAYLIST = 3
    AUDIO = 4


class NotifyEvent(IntEnum):
    """What happened."""

    STARTUP = 0
    SHUTDOWN = 1
    PLAYBACK_STOPPED = 2
    PLAYBACK_PAUSED = 3
    CHANGED_PL_POSITION = 4
    PL_CHANGED = 5
    VOLUME_CHANGED = 6
    SEEK = 7
    NEW_STREAM = 8
    STREAM_FINISHED = 9
    PL_FINISHED = 10
    PROGRESS = 11


@dataclass(frozen=True, slots=True)
class Notification:
    """A single notification. Never queued or retried."""

    cls: NotifyClass
    event: NotifyEvent
    message: str = ""

    def format(self) -> str:
        """Render as a single line: `<class> <event> <message>`."""
        return f"{int(self.cls)} {int(self.event)} {self.message}".rstrip()

    def to_dict(self) -> dict[str, Any]:
        """Convert notification to dictionary for JSON serialization."""
        return {
            "class": self.cls.name.lower(),
            "event": self.event.name.lower(),
            "message": self.message,
        }


# Type alias for notification listeners
NotificationListener = Callable[[Notification], None]


class Notifier:
    """
    Stateless fan-out of notifications.

    Supports:
    - Multiple synchronous listeners
    - Error isolation (a failing listener is logged, never propagated)
    - Calls from any thread
    """

    def __init__(self) -> None:
        self._listeners: list[NotificationListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: NotificationListener) -> None:
        """Register a listener that receives every notification."""
        with self._lock:
            self._listeners.append(listener)
        logger.debug("Subscribed notification listener: %s", listener)

    def unsubscribe(self, listener: NotificationListener) -> bool:
        """
        Remove a listener.

        Returns True if listener was found and removed.
        """
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
        logger.debug("Unsubscribed notification listener: %s", listener)
        return True

    def notify(
        self,
        cls: NotifyClass,
        event: NotifyEvent,
        message: str = "",
    ) -> Notification:
        """
        Raise a notification.

        Args:
            cls: Notification class.
            event: Notification event.
            message: Human-readable detail.

        Returns:
            The notification that was delivered.
        """
        notification = Notification(cls=cls, event=event, message=message)
        logger.debug("NOTIFY %s", notification.format())

        # Call listeners outside of lock
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.exception(
                    "Error in notification listener for %s/%s: %s",
                    cls.name,
                    event.name,
                    e,
                )

        return notification

    def clear(self) -> None:
        """Remove all listeners."""
        with self._lock:
            self._listeners.clear()
        logger.debug("Cleared all notification listeners")
