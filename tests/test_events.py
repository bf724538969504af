"""
Tests for the notification bus.

Tests cover:
- Notification formatting
- Listener subscription and delivery
- Error isolation between listeners
- Logging of every notification
"""

import logging
import threading

from cadence.core.events import (
    MSG_STOPPED_PLAYBACK,
    Notification,
    Notifier,
    NotifyClass,
    NotifyEvent,
)


class TestEnums:
    """Tests for the notification vocabulary."""

    def test_classes_are_distinct(self) -> None:
        """Every notification class has its own number."""
        values = [c.value for c in NotifyClass]
        assert len(values) == len(set(values))
        assert NotifyClass.AUDIO == 4

    def test_event_numbers(self) -> None:
        """Event numbers are stable."""
        assert NotifyEvent.STARTUP == 0
        assert NotifyEvent.NEW_STREAM == 8
        assert NotifyEvent.PROGRESS == 11


class TestNotification:
    """Tests for Notification."""

    def test_format(self) -> None:
        """Renders class, event and message on one line."""
        n = Notification(NotifyClass.TRANSPORT, NotifyEvent.PLAYBACK_STOPPED, MSG_STOPPED_PLAYBACK)
        assert n.format() == "2 2 Stopped playback"

    def test_format_without_message(self) -> None:
        """No trailing space when the message is empty."""
        n = Notification(NotifyClass.SERVER, NotifyEvent.STARTUP)
        assert n.format() == "1 0"

    def test_to_dict(self) -> None:
        """Serializes with lower-case names."""
        n = Notification(NotifyClass.AUDIO, NotifyEvent.VOLUME_CHANGED, "Volume changed")
        assert n.to_dict() == {"class": "audio", "event": "volume_changed", "message": "Volume changed"}


class TestNotifier:
    """Tests for Notifier."""

    def test_notify_without_listeners(self) -> None:
        """Notifying with nobody listening is fine."""
        notifier = Notifier()
        n = notifier.notify(NotifyClass.SERVER, NotifyEvent.STARTUP, "Server startup")
        assert n.event is NotifyEvent.STARTUP

    def test_listener_receives(self) -> None:
        """Subscribed listeners get every notification."""
        notifier = Notifier()
        received: list[Notification] = []
        notifier.subscribe(received.append)

        notifier.notify(NotifyClass.PLAYLIST, NotifyEvent.PL_CHANGED, "Playlist contents changed")

        assert len(received) == 1
        assert received[0].cls is NotifyClass.PLAYLIST
        assert received[0].message == "Playlist contents changed"

    def test_unsubscribe(self) -> None:
        """Unsubscribed listeners get nothing more."""
        notifier = Notifier()
        received: list[Notification] = []
        notifier.subscribe(received.append)

        assert notifier.unsubscribe(received.append) is True
        notifier.notify(NotifyClass.SERVER, NotifyEvent.SHUTDOWN)

        assert received == []

    def test_unsubscribe_unknown(self) -> None:
        """Unsubscribing something never subscribed returns False."""
        notifier = Notifier()
        assert notifier.unsubscribe(lambda n: None) is False

    def test_failing_listener_is_isolated(self) -> None:
        """An exception in one listener doesn't reach the caller or other listeners."""
        notifier = Notifier()
        received: list[Notification] = []

        def broken(notification: Notification) -> None:
            raise RuntimeError("boom")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)

        notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.SEEK)

        assert len(received) == 1

    def test_clear(self) -> None:
        """clear() removes every listener."""
        notifier = Notifier()
        received: list[Notification] = []
        notifier.subscribe(received.append)
        notifier.clear()
        notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.SEEK)
        assert received == []

    def test_logs_every_notification(self, caplog) -> None:
        """Each notification is logged at debug level."""
        notifier = Notifier()
        with caplog.at_level(logging.DEBUG, logger="cadence.core.events"):
            notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PL_FINISHED, "Finished playlist")
        assert "NOTIFY 2 10 Finished playlist" in caplog.text

    def test_notify_from_many_threads(self) -> None:
        """Concurrent notify() calls all reach the listener."""
        notifier = Notifier()
        received: list[Notification] = []
        lock = threading.Lock()

        def listener(notification: Notification) -> None:
            with lock:
                received.append(notification)

        notifier.subscribe(listener)

        threads = [
            threading.Thread(target=notifier.notify, args=(NotifyClass.SERVER, NotifyEvent.PROGRESS, str(i)))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(received) == 20
