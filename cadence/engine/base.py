"""
Media engine adapter interface.

The daemon does not decode audio itself. It drives an engine through the
`MediaEngine` protocol below and receives asynchronous events through
`EngineObserver`, which the command dispatcher implements and attaches at
construction.

Threading contract for implementations:
- Control calls (play, stop, pause, ...) may be made from the request worker
  thread or from inside an observer callback, and must return promptly.
- Observer callbacks are delivered on the engine's own event thread, at any
  time, including while a client command is executing.
- Implementations must not hold their own internal locks while invoking an
  observer callback. The observer takes the playback lock, and a client
  command holding that lock may be calling into the engine at the same time.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cadence.core.models import MetaInfo, TransportStatus

EQ_BANDS = 10
EQ_MIN = -100
EQ_MAX = 100
VOLUME_MIN = 0
VOLUME_MAX = 100


@runtime_checkable
class EngineObserver(Protocol):
    """Receives events from the engine's event thread."""

    def on_playback_finished(self) -> None:
        """The current stream played to its end."""
        ...

    def on_progress(self, message: str, percent: int) -> None:
        """The engine reports progress (connecting, buffering, ...)."""
        ...


class MediaEngine(Protocol):
    """Control surface of a media playback engine."""

    def attach_observer(self, observer: EngineObserver | None) -> None:
        """Set (or clear) the receiver of finish/progress events."""
        ...

    def play(self, uri: str) -> None:
        """
        Open and start playing a stream, replacing the current one.

        Raises:
            PlaybackError: If the stream cannot be opened or started.
        """
        ...

    def stop(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def seek(self, msec: int) -> None: ...

    def get_volume(self) -> int: ...

    def set_volume(self, volume: int) -> None: ...

    def get_eq(self) -> list[int] | None:
        """Return ten band levels in -100..100, or None if no equalizer is available."""
        ...

    def set_eq(self, levels: list[int]) -> None: ...

    def get_pos_len(self) -> tuple[int, int]:
        """
        Return (position, length) in milliseconds.

        Length is 0 for unbounded streams (e.g. radio); both are 0 when
        nothing is playing.
        """
        ...

    def get_transport_status(self) -> TransportStatus: ...

    def get_meta_info(self) -> MetaInfo: ...

    def close(self) -> None:
        """Release resources and stop the event thread."""
        ...
