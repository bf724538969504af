"""
Media engine adapters.

- base: the `MediaEngine` and `EngineObserver` interfaces
- probe: mutagen-based stream inspection
- virtual: a simulated engine for running without audio hardware
"""

from cadence.engine.base import EngineObserver, MediaEngine
from cadence.engine.virtual import VirtualEngine

__all__ = ["EngineObserver", "MediaEngine", "VirtualEngine"]
