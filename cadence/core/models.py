"""
Value types shared between the dispatcher, the engines and the client.

These are plain immutable records. The dispatcher builds them from the
playlist and the engine, the wire format is derived from them, and the
client parses responses back into them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Placeholder for unknown text fields and "no current stream"
UNKNOWN = "-"


class TransportStatus(Enum):
    """Transport state of the media engine. Values are the wire words."""

    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"

    @classmethod
    def from_word(cls, word: str) -> TransportStatus:
        """Parse a wire word; anything unrecognised reads as STOPPED."""
        try:
            return cls(word)
        except ValueError:
            return cls.STOPPED

    @property
    def is_active(self) -> bool:
        """True when a stream is loaded (playing, paused or buffering)."""
        return self is not TransportStatus.STOPPED


@dataclass(frozen=True, slots=True)
class PlaybackStatus:
    """Snapshot returned by the `status` command."""

    transport: TransportStatus = TransportStatus.STOPPED
    position_ms: int = 0
    length_ms: int = 0
    stream: str = UNKNOWN
    playlist_index: int = -1
    playlist_length: int = 0


@dataclass(frozen=True, slots=True)
class MetaInfo:
    """
    Metadata for the current stream.

    Bitrate is in bits per second. Text fields hold "-" when the engine has
    nothing to report (nothing playing, or the tag is missing).
    """

    bitrate: int = 0
    seekable: bool = False
    title: str = UNKNOWN
    artist: str = UNKNOWN
    genre: str = UNKNOWN
    album: str = UNKNOWN
    composer: str = UNKNOWN
