"""
Command dispatcher for the Cadence control protocol.

`CommandProcessor` owns the playlist, drives the media engine and raises
notifications. It is the single entry point for every client-visible
operation:

    processor = CommandProcessor(engine, notifier)
    response = processor.dispatch('add "/music/a b.flac"')
    writer.write(response.encode().encode("utf-8"))

Each verb is a plain function in `COMMAND_HANDLERS`. Handlers receive the
processor and the argument tokens (verb stripped), return a `Response` on
success and raise `ControlError` for anything the client should see as an
error. Arity and number-format checks happen before any state is touched.

The processor is also the engine's `EngineObserver`. When a stream finishes
the engine calls `on_playback_finished()` on its own event thread, and the
processor walks forward through the playlist under the same lock that client
commands take. The lock is re-entrant because that walk reuses the play path
of the `play`/`next`/`prev` commands.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable

from cadence import __version__
from cadence.core import PlaybackError
from cadence.core.events import (
    MSG_CHANGED_PL_POSITION,
    MSG_NEW_STREAM,
    MSG_PAUSED_PLAYBACK,
    MSG_PL_CHANGED,
    MSG_PL_FINISHED,
    MSG_SEEK,
    MSG_STOPPED_PLAYBACK,
    MSG_STREAM_FINISHED,
    MSG_VOLUME_CHANGED,
    Notifier,
    NotifyClass,
    NotifyEvent,
)
from cadence.core.models import UNKNOWN, MetaInfo, PlaybackStatus, TransportStatus
from cadence.core.playlist import NO_INDEX, Playlist
from cadence.engine.base import EQ_BANDS, VOLUME_MAX, VOLUME_MIN, MediaEngine
from cadence.protocol.errors import ControlError, ErrorCode
from cadence.protocol.tokenizer import quote, tokenize

logger = logging.getLogger(__name__)

# "major.minor" as reported by the version command
PROTOCOL_VERSION = ".".join(__version__.split(".")[:2])

OK_PAYLOAD = "OK"

# Equalizer levels travel as 0..200 on the wire; engines use -100..100
EQ_WIRE_MIN = 0
EQ_WIRE_MAX = 200
EQ_WIRE_OFFSET = 100


@dataclass(frozen=True, slots=True)
class Response:
    """Result of one command: a status code and a single-line payload."""

    code: ErrorCode
    payload: str = ""

    @property
    def ok(self) -> bool:
        return self.code == ErrorCode.OK

    def encode(self) -> str:
        """Render as a wire line, newline included."""
        if self.payload:
            return f"{int(self.code)} {self.payload}\n"
        return f"{int(self.code)}\n"

    @classmethod
    def success(cls, payload: str = OK_PAYLOAD) -> Response:
        return cls(ErrorCode.OK, payload)

    @classmethod
    def from_error(cls, error: ControlError) -> Response:
        # Payload must stay on one line
        message = " ".join(error.message.splitlines())
        return cls(error.code, message)


# Type alias for command handlers
CommandHandler = Callable[["CommandProcessor", list[str]], Response]


# =============================================================================
# Argument helpers
# =============================================================================


def parse_int(arg: str) -> int:
    """
    Parse a decimal integer argument.

    Raises:
        ControlError: BAD_ARG if `arg` is not an integer.
    """
    try:
        return int(arg, 10)
    except ValueError:
        raise ControlError(ErrorCode.BAD_ARG, f"Bad number {arg}") from None


def require_no_args(verb: str, args: list[str]) -> None:
    if args:
        raise ControlError(ErrorCode.SYNTAX, f"{verb} command takes no arguments")


def has_line_break(value: str) -> bool:
    return "\r" in value or "\n" in value


def one_line(value: str) -> str:
    """Replace line breaks with spaces so a payload field stays on one line."""
    return " ".join(value.splitlines()) if has_line_break(value) else value


def is_unreadable_local_file(stream: str) -> bool:
    """Absolute paths are checked on disk; anything else is left to the engine."""
    return stream.startswith("/") and not os.access(stream, os.R_OK)


# =============================================================================
# Command processor
# =============================================================================


class CommandProcessor:
    """
    Executes control commands against a playlist and a media engine.

    Attributes:
        engine: The media engine being driven.
        notifier: Notification bus for state changes.
        playlist: The one playlist. Guarded by `playlist.lock`.
        shutdown_requested: Set by the `shutdown` command. The connection
            server checks it before and after every exchange, and is told
            through `add_shutdown_listener` when it is set elsewhere.
    """

    def __init__(
        self,
        engine: MediaEngine,
        notifier: Notifier | None = None,
        playlist: Playlist | None = None,
    ) -> None:
        self.engine = engine
        self.notifier = notifier or Notifier()
        self.playlist = playlist or Playlist()
        self.shutdown_requested = False
        self._shutdown_listeners: list[Callable[[], None]] = []
        engine.attach_observer(self)

    def add_shutdown_listener(self, listener: Callable[[], None]) -> None:
        """Call `listener` (on the requesting thread) when `shutdown` runs."""
        self._shutdown_listeners.append(listener)

    def request_shutdown(self) -> None:
        self.shutdown_requested = True
        for listener in list(self._shutdown_listeners):
            try:
                listener()
            except Exception as e:
                logger.exception("Shutdown listener failed: %s", e)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, line: str) -> Response:
        """Tokenize and execute one request line. Never raises."""
        logger.debug("Command: %s", line)
        return self.execute(tokenize(line))

    def execute(self, tokens: list[str]) -> Response:
        """Execute an already tokenized command. Never raises."""
        if not tokens:
            return Response(ErrorCode.SYNTAX, "Empty command")

        verb, args = tokens[0], tokens[1:]
        handler = COMMAND_HANDLERS.get(verb)
        if handler is None:
            logger.warning("Unknown command: %s", verb)
            return Response(ErrorCode.BAD_COMMAND, f"Unknown command {verb}")

        try:
            response = handler(self, args)
        except ControlError as e:
            logger.info("Command %s failed: %s", verb, e.message)
            response = Response.from_error(e)
        except Exception as e:
            logger.exception("Handler error for %s: %s", verb, e)
            response = Response(ErrorCode.PLAYBACK, f"Internal error in {verb}")

        logger.debug("Response: %s", response.encode().rstrip("\n"))
        return response

    # -------------------------------------------------------------------------
    # Playback helpers (callers hold playlist.lock)
    # -------------------------------------------------------------------------

    def play_stream(self, stream: str) -> None:
        """
        Start `stream` on the engine.

        Raises:
            PlaybackError: If the file is missing or the engine refuses it.
        """
        if is_unreadable_local_file(stream):
            raise PlaybackError(f"File not found: {stream}")
        self.engine.play(stream)
        logger.info("%s %s", MSG_NEW_STREAM, stream)
        self.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.NEW_STREAM, f"{MSG_NEW_STREAM} {stream}")

    def play_index(self, index: int) -> None:
        """
        Select and play the playlist entry at `index`.

        The index is left on the attempted entry even if the engine fails.

        Raises:
            ControlError: PLAYLIST_EMPTY, PLAYLIST_INDEX or PLAYBACK.
        """
        with self.playlist.lock:
            if self.playlist.is_empty:
                raise ControlError(ErrorCode.PLAYLIST_EMPTY, "Playlist empty")
            if not self.playlist.in_range(index):
                raise ControlError(
                    ErrorCode.PLAYLIST_INDEX,
                    f"Playlist index {index} out of range (0-{len(self.playlist) - 1})",
                )
            stream = self.playlist.get(index)
            self.playlist.select(index)
            try:
                self.play_stream(stream)
            except PlaybackError as e:
                raise ControlError(ErrorCode.PLAYBACK, str(e)) from e

    def stop_playback(self) -> None:
        with self.playlist.lock:
            self.engine.stop()
            self.playlist.deselect()
        self.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PLAYBACK_STOPPED, MSG_STOPPED_PLAYBACK)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def status(self) -> PlaybackStatus:
        """Snapshot of transport, position and playlist position."""
        with self.playlist.lock:
            transport = self.engine.get_transport_status()
            position_ms, length_ms = self.engine.get_pos_len()
            return PlaybackStatus(
                transport=transport,
                position_ms=position_ms,
                length_ms=length_ms,
                stream=self.playlist.current_entry or UNKNOWN,
                playlist_index=self.playlist.current_index,
                playlist_length=len(self.playlist),
            )

    def meta_info(self) -> MetaInfo:
        return self.engine.get_meta_info()

    # -------------------------------------------------------------------------
    # EngineObserver
    # -------------------------------------------------------------------------

    def on_playback_finished(self) -> None:
        """
        Advance to the next playable entry after a stream has finished.

        Runs on the engine's event thread. Entries that fail to start are
        logged and skipped; running off the end stops playback.
        """
        with self.playlist.lock:
            index = self.playlist.current_index
            if index == NO_INDEX:
                logger.debug("Ignoring playback finished: nothing selected")
                return
            if self.engine.get_transport_status().is_active:
                logger.debug("Ignoring playback finished: a new stream is already playing")
                return

            old_stream = self.playlist.current_entry
            logger.info("Playback finished for stream '%s'", old_stream)
            self.notifier.notify(
                NotifyClass.TRANSPORT,
                NotifyEvent.STREAM_FINISHED,
                f"{MSG_STREAM_FINISHED} {old_stream}",
            )

            for next_index in range(index + 1, len(self.playlist)):
                stream = self.playlist.get(next_index)
                self.playlist.select(next_index)
                logger.debug("Moving to playlist item %d: %s", next_index, stream)
                try:
                    self.play_stream(stream)
                except PlaybackError as e:
                    logger.error("Skipping playlist item %d: %s", next_index, e)
                    continue
                return

            logger.info(MSG_PL_FINISHED)
            self.playlist.deselect()
            self.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PL_FINISHED, MSG_PL_FINISHED)

    def on_progress(self, message: str, percent: int) -> None:
        logger.debug("Engine progress: %s %d%%", message, percent)
        text = f"{message} [{percent}%]" if percent > 0 else message
        self.notifier.notify(NotifyClass.SERVER, NotifyEvent.PROGRESS, text)


# =============================================================================
# Handlers
# =============================================================================


def cmd_add(proc: CommandProcessor, args: list[str]) -> Response:
    if not args:
        raise ControlError(ErrorCode.SYNTAX, "add command takes one or more argument")

    added = 0
    try:
        for stream in args:
            if has_line_break(stream):
                raise ControlError(ErrorCode.BAD_ARG, f"Stream name contains a line break: {stream!r}")
            if is_unreadable_local_file(stream):
                raise ControlError(ErrorCode.NO_FILE, f"File not found {stream}")
            proc.playlist.add(stream)
            added += 1
    finally:
        if added:
            proc.notifier.notify(NotifyClass.PLAYLIST, NotifyEvent.PL_CHANGED, MSG_PL_CHANGED)
    return Response.success()


def cmd_playlist(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("playlist", args)
    return Response.success(" ".join(quote(one_line(entry)) for entry in proc.playlist.snapshot()))


def cmd_clear(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("clear", args)
    with proc.playlist.lock:
        proc.engine.stop()
        proc.playlist.clear()
    proc.notifier.notify(NotifyClass.PLAYLIST, NotifyEvent.PL_CHANGED, MSG_PL_CHANGED)
    proc.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PLAYBACK_STOPPED, MSG_STOPPED_PLAYBACK)
    return Response.success()


def cmd_play(proc: CommandProcessor, args: list[str]) -> Response:
    if not args:
        proc.engine.resume()
        return Response.success()
    if len(args) > 1:
        raise ControlError(ErrorCode.SYNTAX, "play command takes one argument or none")

    proc.play_index(parse_int(args[0]))
    return Response.success()


def cmd_stop(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("stop", args)
    proc.stop_playback()
    return Response.success()


def cmd_pause(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("pause", args)
    with proc.playlist.lock:
        transport = proc.engine.get_transport_status()
        if transport in (TransportStatus.PLAYING, TransportStatus.BUFFERING):
            proc.engine.pause()
            proc.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.PLAYBACK_PAUSED, MSG_PAUSED_PLAYBACK)
    return Response.success()


def cmd_next(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("next", args)
    with proc.playlist.lock:
        if not proc.playlist.has_next:
            raise ControlError(ErrorCode.PLAYLIST_END, "At end of playlist")
        proc.play_index(proc.playlist.current_index + 1)
        proc.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.CHANGED_PL_POSITION, MSG_CHANGED_PL_POSITION)
    return Response.success()


def cmd_prev(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("prev", args)
    with proc.playlist.lock:
        if not proc.playlist.has_previous:
            raise ControlError(ErrorCode.PLAYLIST_START, "At start of playlist")
        proc.play_index(proc.playlist.current_index - 1)
        proc.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.CHANGED_PL_POSITION, MSG_CHANGED_PL_POSITION)
    return Response.success()


def cmd_volume(proc: CommandProcessor, args: list[str]) -> Response:
    if not args:
        return Response.success(str(proc.engine.get_volume()))
    if len(args) > 1:
        raise ControlError(ErrorCode.SYNTAX, "volume command takes one argument or none")

    level = parse_int(args[0])
    if not VOLUME_MIN <= level <= VOLUME_MAX:
        raise ControlError(ErrorCode.BAD_ARG, f"Volume {level} out of range ({VOLUME_MIN}-{VOLUME_MAX})")
    proc.engine.set_volume(level)
    proc.notifier.notify(NotifyClass.AUDIO, NotifyEvent.VOLUME_CHANGED, MSG_VOLUME_CHANGED)
    return Response.success()


def cmd_eq(proc: CommandProcessor, args: list[str]) -> Response:
    if not args:
        levels = proc.engine.get_eq()
        if levels is None:
            wire_levels = [0] * EQ_BANDS
        else:
            wire_levels = [level + EQ_WIRE_OFFSET for level in levels]
        return Response.success(" ".join(str(level) for level in wire_levels))
    if len(args) != EQ_BANDS:
        raise ControlError(ErrorCode.SYNTAX, "eq command takes ten arguments or none")

    wire_levels = [parse_int(arg) for arg in args]
    for level in wire_levels:
        if not EQ_WIRE_MIN <= level <= EQ_WIRE_MAX:
            raise ControlError(
                ErrorCode.BAD_ARG,
                f"Equalizer level {level} out of range ({EQ_WIRE_MIN}-{EQ_WIRE_MAX})",
            )
    proc.engine.set_eq([level - EQ_WIRE_OFFSET for level in wire_levels])
    return Response.success()


def cmd_seek(proc: CommandProcessor, args: list[str]) -> Response:
    if len(args) != 1:
        raise ControlError(ErrorCode.SYNTAX, "seek command takes one argument")

    msec = max(0, parse_int(args[0]))
    proc.engine.seek(msec)
    proc.notifier.notify(NotifyClass.TRANSPORT, NotifyEvent.SEEK, MSG_SEEK)
    return Response.success()


def cmd_status(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("status", args)
    status = proc.status()
    return Response.success(
        f"{status.transport.value} {status.position_ms} {status.length_ms} "
        f"{quote(one_line(status.stream))} {status.playlist_index} {status.playlist_length}"
    )


def cmd_meta_info(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("meta-info", args)
    meta = proc.meta_info()
    fields = [meta.title, meta.artist, meta.genre, meta.album, meta.composer]
    return Response.success(
        f"{meta.bitrate} {int(meta.seekable)} " + " ".join(quote(one_line(value)) for value in fields)
    )


def cmd_shutdown(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("shutdown", args)
    logger.info("Shutdown requested by client")
    proc.request_shutdown()
    return Response.success()


def cmd_version(proc: CommandProcessor, args: list[str]) -> Response:
    require_no_args("version", args)
    return Response.success(PROTOCOL_VERSION)


# Command dispatch table
COMMAND_HANDLERS: dict[str, CommandHandler] = {
    # Playlist management
    "add": cmd_add,
    "playlist": cmd_playlist,
    "clear": cmd_clear,
    # Transport
    "play": cmd_play,
    "stop": cmd_stop,
    "pause": cmd_pause,
    "next": cmd_next,
    "prev": cmd_prev,
    "seek": cmd_seek,
    # Audio
    "volume": cmd_volume,
    "eq": cmd_eq,
    # Status
    "status": cmd_status,
    "meta-info": cmd_meta_info,
    # Server
    "shutdown": cmd_shutdown,
    "version": cmd_version,
}
