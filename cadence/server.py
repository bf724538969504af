"""
Cadence - Main Server Module

This module contains the main CadenceServer class that wires the media
engine, the command processor and the network front ends together and
manages the application lifecycle.
"""

import asyncio
import logging
import signal

from cadence.config import ServerConfig
from cadence.core.events import (
    MSG_SERVER_SHUTDOWN,
    MSG_SERVER_STARTUP,
    Notifier,
    NotifyClass,
    NotifyEvent,
)
from cadence.engine.base import MediaEngine
from cadence.engine.virtual import VirtualEngine
from cadence.protocol.commands import CommandProcessor
from cadence.protocol.control import ControlServer
from cadence.web.server import WebServer

logger = logging.getLogger(__name__)


class CadenceServer:
    """
    Main Cadence server that coordinates all components.

    The server manages:
    - The media engine (a VirtualEngine unless one is passed in)
    - The command processor, which owns the playlist
    - The control server (port 30001) for protocol clients
    - Optionally, the web server for HTTP/JSON-RPC

    The server runs until a client sends `shutdown` or the process receives
    SIGINT/SIGTERM.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        engine: MediaEngine | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        """
        Initialize the Cadence server.

        Args:
            config: Server settings (defaults if omitted).
            engine: Media engine to drive. If omitted, a VirtualEngine is
                created and owned (closed on stop) by the server.
            notifier: Notification bus (created if not provided).
        """
        self.config = config or ServerConfig()

        self._owns_engine = engine is None
        self.engine: MediaEngine = engine or VirtualEngine(volume=self.config.engine_volume)
        self.notifier = notifier or Notifier()

        self.processor = CommandProcessor(self.engine, self.notifier)

        self.control_server = ControlServer(
            self.processor,
            host=self.config.host,
            port=self.config.port,
            read_timeout=self.config.read_timeout,
        )

        # Web server (HTTP/JSON-RPC), only if a port is configured
        self.web_server: WebServer | None = None

        # Server state
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Start all server components."""
        logger.info("Starting Cadence server on %s:%d", self.config.host, self.config.port)

        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.control_server.start()

        if self.config.web_port is not None:
            self.web_server = WebServer(self.processor)
            await self.web_server.start(host=self.config.host, port=self.config.web_port)

        self.notifier.notify(NotifyClass.SERVER, NotifyEvent.STARTUP, MSG_SERVER_STARTUP)

        logger.info("Cadence server started successfully")
        if self.web_server is not None:
            logger.info("Control: port %d | Web: port %d", self.control_server.bound_port, self.config.web_port)

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping Cadence server...")
        self._running = False

        # Stop Web server first
        if self.web_server:
            await self.web_server.stop()
            self.web_server = None

        await self.control_server.stop()

        self.notifier.notify(NotifyClass.SERVER, NotifyEvent.SHUTDOWN, MSG_SERVER_SHUTDOWN)

        # Close the engine last, after nothing can send it commands
        if self._owns_engine:
            await asyncio.to_thread(self.engine.close)

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("Cadence server stopped")

    def request_shutdown(self) -> None:
        """Ask `run()` to stop the server."""
        if self._shutdown_event:
            self._shutdown_event.set()

    async def run(self) -> None:
        """
        Run the server until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM) or a client `shutdown` command.
        """
        await self.start()

        # Set up signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            self.request_shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        # Wait for either a signal or a client-requested shutdown
        assert self._shutdown_event is not None
        signal_wait = asyncio.create_task(self._shutdown_event.wait())
        client_wait = asyncio.create_task(self.control_server.wait_shutdown())
        try:
            await asyncio.wait({signal_wait, client_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (signal_wait, client_wait):
                task.cancel()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.remove_signal_handler(sig)
                except NotImplementedError:
                    pass

        await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running
