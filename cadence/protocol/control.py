"""
Control Protocol Server for Cadence.

This module implements the TCP side of the control protocol. The protocol is
deliberately minimal: one request and one response per connection.

Protocol Format:
    Request:  command text terminated by a single CR. LF is part of the
              payload, so clients may send "cmd\\r\\n" and the LF is dropped
              along with the rest of the connection.
    Response: "<code> <payload>\\n", after which the server closes the
              connection.

Exchanges are strictly serialized: a connection accepted while another
exchange is in progress waits for it to finish. The dispatcher runs on a
worker thread so the event loop stays responsive while it holds the playback
lock.
"""

from __future__ import annotations

import asyncio
import logging

from cadence.protocol.commands import CommandProcessor, Response
from cadence.protocol.errors import ErrorCode

logger = logging.getLogger(__name__)

# Default control port and bind address
CONTROL_PORT = 30001
CONTROL_HOST = "127.0.0.1"

# Request terminator
REQUEST_TERMINATOR = b"\r"

# Longest request we are willing to buffer
MAX_REQUEST_BYTES = 1024 * 1024


class ControlServer:
    """
    Asyncio TCP server for the control protocol.

    Attributes:
        host: The host address to bind to.
        port: The TCP port to listen on (0 picks a free port; see `bound_port`).
        processor: Command processor that executes requests.
        read_timeout: Seconds to wait for a complete request, or None to wait
            indefinitely.
    """

    def __init__(
        self,
        processor: CommandProcessor,
        host: str = CONTROL_HOST,
        port: int = CONTROL_PORT,
        read_timeout: float | None = None,
    ) -> None:
        self.processor = processor
        self.host = host
        self.port = port
        self.read_timeout = read_timeout

        self._server: asyncio.Server | None = None
        self._bound_port: int | None = None
        self._running = False
        self._exchange_lock = asyncio.Lock()
        self._shutdown_event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        processor.add_shutdown_listener(self._on_shutdown_requested)

    async def start(self) -> None:
        """Start the control server and begin accepting connections."""
        if self._running:
            logger.warning("Control server already running")
            return

        self._shutdown_event.clear()
        self._loop = asyncio.get_running_loop()
        self._server = await asyncio.start_server(
            self._handle_connection,
            host=self.host,
            port=self.port,
            reuse_address=True,
            limit=MAX_REQUEST_BYTES,
        )
        self._running = True
        if self._server.sockets:
            self._bound_port = self._server.sockets[0].getsockname()[1]

        logger.info("Control server listening on %s:%d", self.host, self.bound_port)

    async def stop(self) -> None:
        """Stop accepting connections and close the listening socket."""
        if self._server is None:
            return

        logger.info("Stopping control server...")
        self._running = False

        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._shutdown_event.set()

        logger.info("Control server stopped")

    async def wait_shutdown(self) -> None:
        """Wait until the server stops (client `shutdown` command or `stop()`)."""
        await self._shutdown_event.wait()

    @property
    def is_running(self) -> bool:
        """Check if the server is accepting connections."""
        return self._running

    @property
    def bound_port(self) -> int:
        """The port actually bound (useful when started with port 0)."""
        return self._bound_port if self._bound_port is not None else self.port

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def _on_shutdown_requested(self) -> None:
        """Processor listener; may run on a worker thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._shutdown_outside_exchange)

    def _shutdown_outside_exchange(self) -> None:
        # A running exchange answers its client first, then shuts down
        if self._exchange_lock.locked():
            return
        self._begin_shutdown()

    def _begin_shutdown(self) -> None:
        """Stop accepting connections and wake `wait_shutdown()`."""
        if not self._running:
            return
        logger.info("Shutdown requested; no longer accepting connections")
        self._running = False
        if self._server is not None:
            self._server.close()
        self._shutdown_event.set()

    # -------------------------------------------------------------------------
    # Connection handling
    # -------------------------------------------------------------------------

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Handle one connection: read a request, answer it, close."""
        peername = writer.get_extra_info("peername")
        remote_addr = f"{peername[0]}:{peername[1]}" if peername else "unknown"

        try:
            async with self._exchange_lock:
                if not self._running or self.processor.shutdown_requested:
                    logger.debug("Dropping connection from %s: server is stopping", remote_addr)
                    if self.processor.shutdown_requested:
                        self._begin_shutdown()
                    return

                logger.debug("New connection from %s", remote_addr)
                response = await self._exchange(reader, remote_addr)
                if response is not None:
                    writer.write(response.encode().encode("utf-8"))
                    await writer.drain()

                if self.processor.shutdown_requested:
                    self._begin_shutdown()
        except asyncio.CancelledError:
            logger.debug("Connection handler cancelled for %s", remote_addr)
        except ConnectionResetError:
            logger.info("Connection reset by %s", remote_addr)
        except Exception as e:
            logger.exception("Error handling connection from %s: %s", remote_addr, e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            logger.debug("Connection closed: %s", remote_addr)

    async def _exchange(
        self,
        reader: asyncio.StreamReader,
        remote_addr: str,
    ) -> Response | None:
        """
        Read one request and execute it.

        Returns:
            The response to send, or None if the client timed out.
        """
        try:
            data = await asyncio.wait_for(self._read_request(reader), timeout=self.read_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for request from %s", remote_addr)
            return None
        except asyncio.LimitOverrunError:
            logger.warning("Request from %s exceeds %d bytes", remote_addr, MAX_REQUEST_BYTES)
            return Response(ErrorCode.SYNTAX, "Request too long")

        line = data.decode("utf-8", errors="replace")
        logger.debug("Request from %s: %r", remote_addr, line)
        return await asyncio.to_thread(self.processor.dispatch, line)

    async def _read_request(self, reader: asyncio.StreamReader) -> bytes:
        """Read up to the first CR; end of stream ends the request too."""
        try:
            data = await reader.readuntil(REQUEST_TERMINATOR)
        except asyncio.IncompleteReadError as e:
            return e.partial
        return data[: -len(REQUEST_TERMINATOR)]
