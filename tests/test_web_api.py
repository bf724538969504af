"""
Tests for cadence.web module (FastAPI + JSON-RPC).

These tests verify:
- FastAPI application setup
- JSON-RPC endpoint mirroring the control protocol
- REST API endpoints
- Sharing one CommandProcessor with the TCP side
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from cadence import __version__
from cadence.core.models import MetaInfo
from cadence.protocol.commands import CommandProcessor
from cadence.web.server import WebServer

from .conftest import FakeEngine

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def web_server(processor: CommandProcessor) -> WebServer:
    """Create a WebServer instance for testing."""
    return WebServer(processor)


@pytest.fixture
async def client(web_server: WebServer) -> AsyncClient:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=web_server.app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def rpc(client: AsyncClient, *params, request_id: int = 1) -> dict:
    """Post a cadence.request and return the decoded body."""
    response = await client.post(
        "/jsonrpc.js",
        json={"id": request_id, "method": "cadence.request", "params": list(params)},
    )
    assert response.status_code == 200
    return response.json()


# =============================================================================
# Health Check Tests
# =============================================================================


class TestHealthCheck:
    """Tests for the health check endpoint."""

    async def test_health_check(self, client: AsyncClient) -> None:
        """Test that health check returns ok."""
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["server"] == "cadence"


# =============================================================================
# REST API Tests
# =============================================================================


class TestServerStatus:
    """Tests for the status endpoint."""

    async def test_status_idle(self, client: AsyncClient) -> None:
        """An idle server reports stopped with an empty playlist."""
        response = await client.get("/api/status")
        assert response.status_code == 200
        data = response.json()
        assert data["server"] == "cadence"
        assert data["version"] == __version__
        assert data["transport"] == "stopped"
        assert data["stream"] == "-"
        assert data["playlist_index"] == -1
        assert data["playlist_length"] == 0
        assert data["playlist"] == []

    async def test_status_playing(self, client: AsyncClient, processor: CommandProcessor) -> None:
        """The current entry and playlist are reported."""
        processor.dispatch("add a b")
        processor.dispatch("play 1")

        data = (await client.get("/api/status")).json()

        assert data["transport"] == "playing"
        assert data["stream"] == "b"
        assert data["playlist_index"] == 1
        assert data["playlist"] == ["a", "b"]


class TestMetaInfo:
    """Tests for the meta-info endpoint."""

    async def test_meta_info(self, client: AsyncClient, engine: FakeEngine) -> None:
        """Engine metadata is returned field by field."""
        engine.meta = MetaInfo(bitrate=320000, seekable=True, title="Song", album="Record")

        response = await client.get("/api/meta-info")

        assert response.status_code == 200
        data = response.json()
        assert data["bitrate"] == 320000
        assert data["seekable"] is True
        assert data["title"] == "Song"
        assert data["album"] == "Record"
        assert data["artist"] == "-"


# =============================================================================
# JSON-RPC Tests
# =============================================================================


class TestJsonRpc:
    """Tests for the JSON-RPC endpoint."""

    async def test_version(self, client: AsyncClient) -> None:
        """Test version command via JSON-RPC."""
        data = await rpc(client, "version")
        assert data["id"] == 1
        assert data["method"] == "cadence.request"
        assert data["result"] == {"code": 0, "payload": "0.1"}

    async def test_tokens_need_no_quoting(self, client: AsyncClient, processor: CommandProcessor) -> None:
        """Arguments with spaces arrive as single tokens."""
        data = await rpc(client, "add", "http://radio.example/a b", 'x "y"')
        assert data["result"]["code"] == 0
        assert processor.playlist.snapshot() == ("http://radio.example/a b", 'x "y"')

    async def test_numbers_are_accepted(self, client: AsyncClient, engine: FakeEngine) -> None:
        """Numeric params are converted to tokens."""
        data = await rpc(client, "volume", 25)
        assert data["result"]["code"] == 0
        assert engine.volume == 25

    async def test_command_error_is_a_result(self, client: AsyncClient) -> None:
        """Command failures carry the control protocol code."""
        data = await rpc(client, "play", "0")
        assert "error" not in data
        assert data["result"] == {"code": 7, "payload": "Playlist empty"}

    async def test_unknown_command(self, client: AsyncClient) -> None:
        """Unknown verbs are BAD_COMMAND results."""
        data = await rpc(client, "rewind")
        assert data["result"]["code"] == 4

    async def test_alternative_endpoint(self, client: AsyncClient) -> None:
        """Test that /jsonrpc (without .js) also works."""
        response = await client.post(
            "/jsonrpc",
            json={"id": 3, "method": "cadence.request", "params": ["version"]},
        )
        assert response.status_code == 200
        assert response.json()["result"]["code"] == 0

    async def test_unknown_method(self, client: AsyncClient) -> None:
        """Test that unknown method returns error."""
        response = await client.post(
            "/jsonrpc.js",
            json={"id": 4, "method": "unknown.method", "params": ["version"]},
        )
        data = response.json()
        assert data["error"]["code"] == -32601

    async def test_empty_params(self, client: AsyncClient) -> None:
        """Test that empty params return an error."""
        data = await rpc(client, request_id=5)
        assert data["id"] == 5
        assert data["error"]["code"] == -32602

    async def test_nested_params(self, client: AsyncClient) -> None:
        """Nested arrays are not tokens."""
        data = await rpc(client, "add", ["a", "b"])
        assert data["error"]["code"] == -32602

    async def test_shared_state(self, client: AsyncClient, processor: CommandProcessor) -> None:
        """Changes made over TCP dispatch are visible over JSON-RPC."""
        processor.dispatch("add one two")
        data = await rpc(client, "playlist")
        assert data["result"]["payload"] == '"one" "two"'

    @pytest.mark.parametrize("token", [True, False])
    async def test_booleans_are_rejected(self, client: AsyncClient, engine: FakeEngine, token: bool) -> None:
        """Booleans are not command tokens."""
        data = await rpc(client, "volume", token)
        assert data["error"]["code"] == -32602
        assert engine.volume == 50

    async def test_shutdown_sets_flag(self, client: AsyncClient, processor: CommandProcessor) -> None:
        """shutdown over JSON-RPC reaches the shared processor."""
        data = await rpc(client, "shutdown")
        assert data["result"] == {"code": 0, "payload": "OK"}
        assert processor.shutdown_requested
