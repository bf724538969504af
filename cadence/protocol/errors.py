"""
Control protocol status codes and the exception that carries them.

Every response line starts with one of these codes; 0 means success. The last
two codes are never sent by the server: the client library uses them to
report communication failures and replies it cannot parse.
"""

from __future__ import annotations

from enum import IntEnum

from cadence.core import CoreError


class ErrorCode(IntEnum):
    """Numeric status codes as they appear on the wire."""

    OK = 0
    SYNTAX = 1  # Syntax error in client command
    PLAYBACK = 2  # General playback problem
    NO_FILE = 3  # Tried to add a non-existent file
    BAD_COMMAND = 4  # Unrecognized command
    BAD_ARG = 5  # Defective command argument
    PLAYLIST_INDEX = 6  # Playlist index out of range
    PLAYLIST_EMPTY = 7  # Playlist is empty
    PLAYLIST_END = 8  # Attempt to move past end of playlist
    PLAYLIST_START = 9  # Attempt to move before start of playlist
    COMM = 10  # Client side: communication error with server
    RESPONSE = 11  # Client side: unexpected response from server


class ControlError(CoreError):
    """
    A command failed in a way the client should be told about.

    Handlers raise this; the dispatcher turns it into an error response.
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"ControlError({self.code.name}, {self.message!r})"
