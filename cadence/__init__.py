"""
Cadence - Remote control daemon for a media playback engine.

Clients send short text commands over TCP ("add a stream", "play index N",
"set volume") and receive one-line responses. Cadence keeps the playlist,
drives the engine and advances through the playlist as streams finish.
"""

__version__ = "0.1.0"
__author__ = "Cadence Contributors"
__license__ = "GPL-3.0"

from cadence.server import CadenceServer

__all__ = ["CadenceServer", "__version__"]
