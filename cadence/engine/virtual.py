"""
Virtual media engine.

A simulated engine that behaves like a real one from the dispatcher's point of
view, without producing any sound:

- `play()` probes the stream (mutagen for local files) and starts a clock
- position advances in real time while playing, freezes while paused
- when the clock reaches the stream length, the event thread reports
  "playback finished"; unbounded streams (length 0) play until stopped
- volume and equalizer levels are stored and reported back

Events are delivered on a dedicated event thread, mirroring how real engines
(xine, mpv, VLC) call back from their own listener threads. Tests and tools can
inject events with `finish()`, `report_progress()` and `set_buffering()`, and
wait for delivery with `wait_idle()`.

Each `play()` bumps a stream generation. Finish events carry the generation
they were raised for and are dropped if another stream has been started since
(a late "finished" for the previous stream must not advance the playlist).
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto

from cadence.core.models import MetaInfo, TransportStatus
from cadence.engine.base import EQ_BANDS, EQ_MAX, EQ_MIN, VOLUME_MAX, VOLUME_MIN, EngineObserver
from cadence.engine.probe import StreamInfo, probe_stream

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 50

# How long close() waits for the event thread
CLOSE_TIMEOUT_SECONDS = 2.0


class _EventKind(Enum):
    WAKE = auto()  # State changed; recompute the end-of-stream deadline
    FINISHED = auto()
    PROGRESS = auto()


@dataclass(frozen=True, slots=True)
class _EngineEvent:
    kind: _EventKind
    generation: int = 0
    message: str = ""
    percent: int = 0


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class VirtualEngine:
    """
    In-process simulated media engine.

    Attributes:
        default_length_ms: Length assumed for local files mutagen cannot read
            (0 means "unbounded": play until stopped).
    """

    def __init__(
        self,
        volume: int = DEFAULT_VOLUME,
        *,
        default_length_ms: int = 0,
    ) -> None:
        self.default_length_ms = default_length_ms

        self._lock = threading.Lock()
        self._observer: EngineObserver | None = None

        self._stream: StreamInfo | None = None
        self._generation = 0
        # True between a successful play() and stop()/end of stream
        self._playback_started = False
        self._paused = False
        self._buffering = False

        # Position bookkeeping: position = _position_base_ms + time since _resumed_at
        self._position_base_ms = 0
        self._resumed_at: float | None = None

        self._volume = _clamp(volume, VOLUME_MIN, VOLUME_MAX)
        self._eq: list[int] | None = None

        self._events: queue.Queue[_EngineEvent | None] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(
            target=self._run,
            name="virtual-engine-events",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Virtual engine started (volume=%d)", self._volume)

    # -------------------------------------------------------------------------
    # MediaEngine interface
    # -------------------------------------------------------------------------

    def attach_observer(self, observer: EngineObserver | None) -> None:
        with self._lock:
            self._observer = observer

    def play(self, uri: str) -> None:
        info = probe_stream(uri, self.default_length_ms)

        with self._lock:
            self._generation += 1
            self._stream = info
            self._playback_started = True
            self._paused = False
            self._buffering = False
            self._position_base_ms = 0
            self._resumed_at = time.monotonic()
            generation = self._generation

        logger.info("Virtual engine playing %s (gen=%d, length=%dms)", uri, generation, info.length_ms)
        self._post(_EngineEvent(_EventKind.WAKE))
        if info.is_network:
            self.report_progress(f"Connecting to {uri}", 0)

    def stop(self) -> None:
        with self._lock:
            self._stream = None
            self._playback_started = False
            self._paused = False
            self._buffering = False
            self._position_base_ms = 0
            self._resumed_at = None
        self._post(_EngineEvent(_EventKind.WAKE))

    def pause(self) -> None:
        with self._lock:
            if not self._playback_started or self._paused:
                return
            self._position_base_ms = self._position_locked()
            self._resumed_at = None
            self._paused = True
        self._post(_EngineEvent(_EventKind.WAKE))

    def resume(self) -> None:
        with self._lock:
            if not self._playback_started or not self._paused:
                return
            self._resumed_at = time.monotonic()
            self._paused = False
        self._post(_EngineEvent(_EventKind.WAKE))

    def seek(self, msec: int) -> None:
        msec = max(0, msec)
        finished_generation: int | None = None
        with self._lock:
            if self._stream is None or not self._playback_started:
                return
            length = self._stream.length_ms
            if length > 0 and msec >= length:
                # Seeking past the end finishes the stream
                msec = length
                finished_generation = self._generation
            self._position_base_ms = msec
            self._resumed_at = None if self._paused else time.monotonic()

        if finished_generation is not None:
            self._post(_EngineEvent(_EventKind.FINISHED, generation=finished_generation))
        else:
            self._post(_EngineEvent(_EventKind.WAKE))

    def get_volume(self) -> int:
        with self._lock:
            return self._volume

    def set_volume(self, volume: int) -> None:
        with self._lock:
            self._volume = _clamp(volume, VOLUME_MIN, VOLUME_MAX)

    def get_eq(self) -> list[int] | None:
        with self._lock:
            return list(self._eq) if self._eq is not None else None

    def set_eq(self, levels: list[int]) -> None:
        if len(levels) != EQ_BANDS:
            raise ValueError(f"Equalizer needs {EQ_BANDS} levels, got {len(levels)}")
        with self._lock:
            self._eq = [_clamp(level, EQ_MIN, EQ_MAX) for level in levels]

    def get_pos_len(self) -> tuple[int, int]:
        with self._lock:
            if self._stream is None:
                return 0, 0
            return self._position_locked(), self._stream.length_ms

    def get_transport_status(self) -> TransportStatus:
        with self._lock:
            if not self._playback_started:
                return TransportStatus.STOPPED
            if self._buffering:
                return TransportStatus.BUFFERING
            if self._paused:
                return TransportStatus.PAUSED
            return TransportStatus.PLAYING

    def get_meta_info(self) -> MetaInfo:
        with self._lock:
            if self._stream is None or not self._playback_started:
                return MetaInfo()
            return self._stream.meta

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._events.put(None)
        self._thread.join(timeout=CLOSE_TIMEOUT_SECONDS)
        logger.debug("Virtual engine closed")

    # -------------------------------------------------------------------------
    # Simulation hooks
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> int:
        """Generation of the most recently started stream."""
        with self._lock:
            return self._generation

    def finish(self) -> None:
        """Report the current stream as finished, as if it had played to its end."""
        with self._lock:
            generation = self._generation
        self._post(_EngineEvent(_EventKind.FINISHED, generation=generation))

    def report_progress(self, message: str, percent: int) -> None:
        """Deliver a progress event on the event thread."""
        self._post(_EngineEvent(_EventKind.PROGRESS, message=message, percent=percent))

    def set_buffering(self, buffering: bool) -> None:
        """Simulate the engine's buffering statistics event."""
        with self._lock:
            self._buffering = buffering

    def wait_idle(self) -> None:
        """Block until every event posted so far has been delivered."""
        self._events.join()

    # -------------------------------------------------------------------------
    # Event thread
    # -------------------------------------------------------------------------

    def _post(self, event: _EngineEvent) -> None:
        if not self._closed:
            self._events.put(event)

    def _position_locked(self) -> int:
        position = self._position_base_ms
        if self._resumed_at is not None:
            position += int((time.monotonic() - self._resumed_at) * 1000)
        if self._stream is not None and self._stream.length_ms > 0:
            position = min(position, self._stream.length_ms)
        return position

    def _seconds_to_end(self) -> float | None:
        """Time until the current stream ends, or None if it never ends by itself."""
        with self._lock:
            if (
                self._stream is None
                or not self._playback_started
                or self._paused
                or self._stream.length_ms <= 0
            ):
                return None
            remaining_ms = self._stream.length_ms - self._position_locked()
            return max(0.0, remaining_ms / 1000)

    def _run(self) -> None:
        while True:
            timeout = self._seconds_to_end()
            try:
                event = self._events.get(timeout=timeout)
            except queue.Empty:
                # Deadline reached: the stream played to its end
                with self._lock:
                    generation = self._generation
                self._deliver_finished(generation)
                continue

            try:
                if event is None:
                    return
                if event.kind is _EventKind.FINISHED:
                    self._deliver_finished(event.generation)
                elif event.kind is _EventKind.PROGRESS:
                    self._deliver_progress(event.message, event.percent)
            finally:
                self._events.task_done()

    def _deliver_finished(self, generation: int) -> None:
        with self._lock:
            if not self._playback_started or generation != self._generation:
                logger.debug("Dropping stale finish event (gen=%d, current=%d)", generation, self._generation)
                return
            self._playback_started = False
            self._paused = False
            self._buffering = False
            if self._stream is not None:
                self._position_base_ms = self._stream.length_ms
            self._resumed_at = None
            observer = self._observer

        logger.debug("Virtual engine: playback finished (gen=%d)", generation)
        if observer is None:
            return
        # Observer runs without our lock held
        try:
            observer.on_playback_finished()
        except Exception as e:
            logger.exception("Error in playback-finished observer: %s", e)

    def _deliver_progress(self, message: str, percent: int) -> None:
        with self._lock:
            observer = self._observer
        if observer is None:
            return
        try:
            observer.on_progress(message, percent)
        except Exception as e:
            logger.exception("Error in progress observer: %s", e)
