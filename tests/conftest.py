"""
Shared fixtures for the Cadence test suite.

`FakeEngine` is a synchronous stand-in for a media engine: it records every
call, can be told to reject particular streams, and delivers "playback
finished" on the caller's thread when `finish()` is called.
"""

from __future__ import annotations

from typing import Any

import pytest

from cadence.core import PlaybackError
from cadence.core.events import Notification, Notifier, NotifyEvent
from cadence.core.models import MetaInfo, TransportStatus
from cadence.engine.base import EngineObserver
from cadence.protocol.commands import CommandProcessor


class FakeEngine:
    """In-memory MediaEngine for tests."""

    def __init__(self) -> None:
        self.observer: EngineObserver | None = None
        self.calls: list[tuple[Any, ...]] = []
        self.failing: set[str] = set()
        self.transport = TransportStatus.STOPPED
        self.current: str | None = None
        self.volume = 50
        self.eq: list[int] | None = None
        self.position_ms = 0
        self.length_ms = 0
        self.meta = MetaInfo()
        self.closed = False

    def attach_observer(self, observer: EngineObserver | None) -> None:
        self.observer = observer

    def play(self, uri: str) -> None:
        self.calls.append(("play", uri))
        if uri in self.failing:
            raise PlaybackError(f"Can't open stream {uri}")
        self.current = uri
        self.transport = TransportStatus.PLAYING

    def stop(self) -> None:
        self.calls.append(("stop",))
        self.current = None
        self.transport = TransportStatus.STOPPED

    def pause(self) -> None:
        self.calls.append(("pause",))
        if self.transport is TransportStatus.PLAYING:
            self.transport = TransportStatus.PAUSED

    def resume(self) -> None:
        self.calls.append(("resume",))
        if self.transport is TransportStatus.PAUSED:
            self.transport = TransportStatus.PLAYING

    def seek(self, msec: int) -> None:
        self.calls.append(("seek", msec))
        self.position_ms = msec

    def get_volume(self) -> int:
        return self.volume

    def set_volume(self, volume: int) -> None:
        self.calls.append(("set_volume", volume))
        self.volume = volume

    def get_eq(self) -> list[int] | None:
        return None if self.eq is None else list(self.eq)

    def set_eq(self, levels: list[int]) -> None:
        self.calls.append(("set_eq", list(levels)))
        self.eq = list(levels)

    def get_pos_len(self) -> tuple[int, int]:
        return self.position_ms, self.length_ms

    def get_transport_status(self) -> TransportStatus:
        return self.transport

    def get_meta_info(self) -> MetaInfo:
        return self.meta

    def close(self) -> None:
        self.closed = True

    # Test helpers

    def finish(self) -> None:
        """Simulate the current stream reaching its end."""
        self.current = None
        self.transport = TransportStatus.STOPPED
        if self.observer is not None:
            self.observer.on_playback_finished()

    def played(self) -> list[str]:
        """URIs passed to play(), in order, including failed attempts."""
        return [call[1] for call in self.calls if call[0] == "play"]


class NotificationRecorder:
    """Notifier listener that keeps everything it receives."""

    def __init__(self) -> None:
        self.received: list[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self.received.append(notification)

    def events(self) -> list[NotifyEvent]:
        return [n.event for n in self.received]

    def clear(self) -> None:
        self.received.clear()


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def engine() -> FakeEngine:
    """Create a fake media engine."""
    return FakeEngine()


@pytest.fixture
def notifier() -> Notifier:
    """Create a notification bus."""
    return Notifier()


@pytest.fixture
def recorder(notifier: Notifier) -> NotificationRecorder:
    """Record every notification raised on `notifier`."""
    rec = NotificationRecorder()
    notifier.subscribe(rec)
    return rec


@pytest.fixture
def processor(engine: FakeEngine, notifier: Notifier) -> CommandProcessor:
    """Create a command processor driving the fake engine."""
    return CommandProcessor(engine, notifier)
