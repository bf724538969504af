"""
Stream probing for engines that need to know what they are about to play.

Local files are inspected with mutagen for duration, bitrate and the tags the
`meta-info` command reports. Network streams (anything with a URL scheme
other than file://) are not touched: they are unbounded and not seekable.

Probing is synchronous and cheap (mutagen reads headers only).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import unquote, urlsplit

from mutagen import File as mutagen_file
from mutagen import MutagenError

from cadence.core import PlaybackError
from cadence.core.models import UNKNOWN, MetaInfo

logger = logging.getLogger(__name__)

# Tag keys per field: ID3, Vorbis (both cases), MP4
TITLE_KEYS = ("TIT2", "title", "TITLE", "©nam")
ARTIST_KEYS = ("TPE1", "artist", "ARTIST", "©ART")
ALBUM_KEYS = ("TALB", "album", "ALBUM", "©alb")
GENRE_KEYS = ("TCON", "genre", "GENRE", "©gen")
COMPOSER_KEYS = ("TCOM", "composer", "COMPOSER", "©wrt")


@dataclass(frozen=True, slots=True)
class StreamInfo:
    """What the engine knows about a stream before starting it."""

    uri: str
    path: Path | None = None
    length_ms: int = 0
    meta: MetaInfo = field(default_factory=MetaInfo)

    @property
    def is_network(self) -> bool:
        return self.path is None


def is_network_uri(uri: str) -> bool:
    """
    Check whether `uri` names a network stream rather than a local file.

    Single-letter schemes are treated as Windows drive letters.
    """
    scheme = urlsplit(uri).scheme
    return len(scheme) > 1 and scheme.lower() != "file"


def local_path(uri: str) -> Path:
    """Convert a file path or file:// URL to a Path."""
    parts = urlsplit(uri)
    if parts.scheme.lower() == "file":
        return Path(unquote(parts.path))
    return Path(uri)


def _first_text(value: Any) -> str | None:
    """
    Mutagen returns different shapes depending on container/tag type:
    - ID3 frames
    - lists of strings
    - plain strings
    - objects with `.text`
    We normalize to a single string (first item if multiple).
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return _first_text(value[0])

    # Mutagen ID3 frames often have `.text` list
    text = getattr(value, "text", None)
    if text is not None:
        return _first_text(text)

    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")

    s = str(value).strip()
    return s or None


def _tags_get(tags: Any, keys: Iterable[str]) -> Any:
    if not tags:
        return None
    for k in keys:
        if k in tags:
            return tags.get(k)
    return None


def read_meta(path: Path, default_length_ms: int = 0) -> tuple[MetaInfo, int]:
    """
    Read metadata and duration from a local audio file.

    Files mutagen does not recognise are still accepted; they report unknown
    metadata and `default_length_ms`.

    Returns:
        (meta info, length in milliseconds)
    """
    try:
        audio = mutagen_file(path)
    except (MutagenError, OSError) as e:
        logger.debug("mutagen could not read %s: %s", path, e)
        audio = None

    if audio is None:
        return MetaInfo(seekable=default_length_ms > 0), default_length_ms

    tags: Any = None
    if getattr(audio, "tags", None) is not None:
        try:
            tags = dict(audio.tags)
        except Exception:
            # Some tag containers may not be directly castable
            tags = audio.tags

    length_ms = default_length_ms
    bitrate = 0
    info = getattr(audio, "info", None)
    if info is not None:
        length = getattr(info, "length", None)
        if isinstance(length, (int, float)) and length > 0:
            length_ms = int(length * 1000)

        br = getattr(info, "bitrate", None)
        if isinstance(br, int) and br > 0:
            bitrate = br

    meta = MetaInfo(
        bitrate=bitrate,
        seekable=length_ms > 0,
        title=_first_text(_tags_get(tags, TITLE_KEYS)) or UNKNOWN,
        artist=_first_text(_tags_get(tags, ARTIST_KEYS)) or UNKNOWN,
        genre=_first_text(_tags_get(tags, GENRE_KEYS)) or UNKNOWN,
        album=_first_text(_tags_get(tags, ALBUM_KEYS)) or UNKNOWN,
        composer=_first_text(_tags_get(tags, COMPOSER_KEYS)) or UNKNOWN,
    )
    return meta, length_ms


def probe_stream(uri: str, default_length_ms: int = 0) -> StreamInfo:
    """
    Inspect a stream before playing it.

    Raises:
        PlaybackError: If a local file does not exist or is not readable.
    """
    if is_network_uri(uri):
        return StreamInfo(uri=uri)

    path = local_path(uri)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise PlaybackError(f"Can't open stream {uri}")

    meta, length_ms = read_meta(path, default_length_ms)
    return StreamInfo(uri=uri, path=path, length_ms=length_ms, meta=meta)
