"""
Core domain package.

This package contains the state and vocabulary shared by every surface of the
daemon (TCP control protocol, web facade, engine adapters). It has no
networking code of its own.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `cadence.core.playlist`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "PlaybackError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class PlaybackError(CoreError):
    """Raised by a media engine when a stream cannot be opened or started."""
