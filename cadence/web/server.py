"""
Web Server Module for Cadence.

This module provides the WebServer class that creates and manages the
FastAPI application, registers all routes, and handles HTTP/JSON-RPC requests.

The WebServer integrates:
- JSON-RPC endpoint mirroring the TCP control protocol
- REST API for status dashboards
- Health check
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cadence import __version__
from cadence.web.jsonrpc import JsonRpcHandler
from cadence.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from cadence.protocol.commands import CommandProcessor

logger = logging.getLogger(__name__)


class WebServer:
    """
    FastAPI-based web server for Cadence.

    Optional; the TCP control port is the primary interface.
    """

    def __init__(self, processor: CommandProcessor) -> None:
        """
        Initialize the WebServer.

        Args:
            processor: Command processor shared with the control server
        """
        self.processor = processor

        # Create FastAPI app
        self.app = FastAPI(
            title="Cadence",
            description="Remote control for a media playback engine",
            version=__version__,
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Create JSON-RPC handler
        self.jsonrpc_handler = JsonRpcHandler(processor)

        # Server state
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 9000

        # Register routes
        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        # Health check
        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "cadence"}

        # JSON-RPC endpoints
        @self.app.post("/jsonrpc.js", tags=["jsonrpc"])
        async def jsonrpc_endpoint(request: dict[str, Any]) -> dict[str, Any]:
            """Main JSON-RPC endpoint."""
            return await self.jsonrpc_handler.handle_request(request)

        @self.app.post("/jsonrpc", tags=["jsonrpc"])
        async def jsonrpc_alt_endpoint(request: dict[str, Any]) -> dict[str, Any]:
            """Alternative JSON-RPC endpoint (without .js extension)."""
            return await self.jsonrpc_handler.handle_request(request)

        # Register API routes
        register_api_routes(self.app, processor=self.processor)

    async def start(self, host: str = "127.0.0.1", port: int = 9000) -> None:
        """
        Start the web server.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        # Configure uvicorn
        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        # Start server in background
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.warning("Web server exited with error: %s", e)
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
