"""
REST API Routes for Cadence.

Provides read-only REST endpoints for dashboards and scripts:
- /api/status: Transport state, current stream and playlist
- /api/meta-info: Metadata of the current stream
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException

from cadence import __version__

if TYPE_CHECKING:
    from cadence.protocol.commands import CommandProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# Reference set during route registration
_processor: CommandProcessor | None = None


def register_api_routes(app, processor: CommandProcessor) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        processor: CommandProcessor whose state is reported
    """
    global _processor
    _processor = processor
    app.include_router(router)


@router.get("/api/status")
async def server_status() -> dict[str, Any]:
    """Get playback status and the playlist."""
    if _processor is None:
        raise HTTPException(status_code=503, detail="Server not initialized")

    status = await asyncio.to_thread(_processor.status)
    playlist = _processor.playlist.snapshot()

    return {
        "server": "cadence",
        "version": __version__,
        "transport": status.transport.value,
        "position_ms": status.position_ms,
        "length_ms": status.length_ms,
        "stream": status.stream,
        "playlist_index": status.playlist_index,
        "playlist_length": status.playlist_length,
        "playlist": list(playlist),
    }


@router.get("/api/meta-info")
async def meta_info() -> dict[str, Any]:
    """Get metadata of the current stream."""
    if _processor is None:
        raise HTTPException(status_code=503, detail="Server not initialized")

    meta = await asyncio.to_thread(_processor.meta_info)
    return asdict(meta)
