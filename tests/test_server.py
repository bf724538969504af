"""
Tests for the CadenceServer lifecycle.

The server is started on OS-assigned ports with the fake engine and driven
through the control client.
"""

from __future__ import annotations

import asyncio

import pytest

from cadence.config import ServerConfig
from cadence.core.events import Notifier, NotifyEvent
from cadence.protocol.client import ControlClient
from cadence.server import CadenceServer

from .conftest import FakeEngine, NotificationRecorder

# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def server(engine: FakeEngine, notifier: Notifier) -> CadenceServer:
    """Create a server bound to a free port."""
    return CadenceServer(ServerConfig(port=0), engine=engine, notifier=notifier)


# -----------------------------------------------------------------------------
# Lifecycle Tests
# -----------------------------------------------------------------------------


class TestLifecycle:
    """Tests for start/stop/run."""

    async def test_start_and_stop(
        self,
        server: CadenceServer,
        recorder: NotificationRecorder,
        engine: FakeEngine,
    ) -> None:
        """Start and stop raise startup and shutdown notifications."""
        await server.start()
        assert server.is_running
        assert server.control_server.is_running
        assert server.web_server is None

        await server.stop()

        assert not server.is_running
        assert recorder.events() == [NotifyEvent.STARTUP, NotifyEvent.SHUTDOWN]
        # Engines passed in belong to the caller
        assert engine.closed is False

    async def test_stop_twice(self, server: CadenceServer, recorder: NotificationRecorder) -> None:
        """A second stop does nothing."""
        await server.start()
        await server.stop()
        await server.stop()
        assert recorder.events().count(NotifyEvent.SHUTDOWN) == 1

    async def test_run_until_client_shutdown(self, server: CadenceServer) -> None:
        """run() returns after a client sends shutdown."""
        run_task = asyncio.create_task(server.run())
        while not server.control_server.is_running:
            await asyncio.sleep(0.01)

        client = ControlClient("127.0.0.1", server.control_server.bound_port, timeout=5)
        await client.add("http://radio.example/a")
        await client.shutdown()

        await asyncio.wait_for(run_task, timeout=5)
        assert not server.is_running

    async def test_run_until_shutdown_outside_tcp(self, server: CadenceServer) -> None:
        """A shutdown command from the web side also ends run()."""
        run_task = asyncio.create_task(server.run())
        while not server.control_server.is_running:
            await asyncio.sleep(0.01)

        await asyncio.to_thread(server.processor.execute, ["shutdown"])

        await asyncio.wait_for(run_task, timeout=5)
        assert not server.is_running

    async def test_run_until_request_shutdown(self, server: CadenceServer) -> None:
        """request_shutdown() ends run()."""
        run_task = asyncio.create_task(server.run())
        while not server.is_running:
            await asyncio.sleep(0.01)

        server.request_shutdown()

        await asyncio.wait_for(run_task, timeout=5)
        assert not server.control_server.is_running

    async def test_owned_engine_is_closed(self) -> None:
        """A server that created its own engine closes it on stop."""
        server = CadenceServer(ServerConfig(port=0, engine_volume=30))
        assert server.engine.get_volume() == 30

        await server.start()
        await server.stop()

        assert server.engine._closed
