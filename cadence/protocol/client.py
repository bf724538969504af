"""
Async client for the Cadence control protocol.

Each call opens a fresh connection, sends one command and reads one response
line, mirroring what the server expects:

    client = ControlClient("127.0.0.1", 30001)
    await client.add("/music/a.flac", "http://radio.example/stream")
    await client.play(0)
    status = await client.status()
    print(status.transport, msec_to_hms(status.position_ms))

Server-side errors raise `ClientError` with the code the server sent.
Communication failures use `ErrorCode.COMM`; replies that cannot be parsed
use `ErrorCode.RESPONSE`.
"""

from __future__ import annotations

import asyncio
import logging

from cadence.core import CoreError
from cadence.core.models import MetaInfo, PlaybackStatus, TransportStatus
from cadence.protocol.control import CONTROL_HOST, CONTROL_PORT
from cadence.protocol.errors import ErrorCode
from cadence.protocol.tokenizer import join_tokens, tokenize

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ClientError(CoreError):
    """A command failed, either on the server or on the way there."""

    def __init__(self, code: ErrorCode | int, message: str) -> None:
        super().__init__(message)
        try:
            self.code = ErrorCode(code)
        except ValueError:
            self.code = ErrorCode.RESPONSE
        self.message = message

    def __repr__(self) -> str:
        return f"ClientError({self.code.name}, {self.message!r})"


def msec_to_hms(msec: int) -> tuple[int, int, int]:
    """Split a millisecond count into (hours, minutes, seconds)."""
    total_seconds = max(0, msec) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return hours, minutes, seconds


def parse_response(line: str) -> tuple[ErrorCode, str]:
    """
    Split a response line into its code and payload.

    Raises:
        ClientError: RESPONSE if the line does not start with a known code.
    """
    line = line.rstrip("\r\n")
    code_text, _, payload = line.partition(" ")
    try:
        code = ErrorCode(int(code_text))
    except ValueError:
        raise ClientError(ErrorCode.RESPONSE, f"Unexpected response from server: {line!r}") from None
    return code, payload


def _int_field(value: str, line: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ClientError(ErrorCode.RESPONSE, f"Unexpected response from server: {line!r}") from None


def parse_status(payload: str) -> PlaybackStatus:
    fields = tokenize(payload)
    if len(fields) != 6:
        raise ClientError(ErrorCode.RESPONSE, f"Unexpected status response: {payload!r}")
    return PlaybackStatus(
        transport=TransportStatus.from_word(fields[0]),
        position_ms=_int_field(fields[1], payload),
        length_ms=_int_field(fields[2], payload),
        stream=fields[3],
        playlist_index=_int_field(fields[4], payload),
        playlist_length=_int_field(fields[5], payload),
    )


def parse_meta_info(payload: str) -> MetaInfo:
    fields = tokenize(payload)
    if len(fields) != 7:
        raise ClientError(ErrorCode.RESPONSE, f"Unexpected meta-info response: {payload!r}")
    return MetaInfo(
        bitrate=_int_field(fields[0], payload),
        seekable=_int_field(fields[1], payload) != 0,
        title=fields[2],
        artist=fields[3],
        genre=fields[4],
        album=fields[5],
        composer=fields[6],
    )


class ControlClient:
    """
    Client for a running Cadence control server.

    Attributes:
        host: Server host.
        port: Server control port.
        timeout: Seconds allowed for connecting and for the whole exchange.
    """

    def __init__(
        self,
        host: str = CONTROL_HOST,
        port: int = CONTROL_PORT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    async def send_command(self, *tokens: str) -> str:
        """
        Send one command and return the payload of a successful response.

        Tokens are quoted, so arguments may contain spaces and quotes.

        Raises:
            ClientError: If the server reports an error or cannot be reached.
        """
        line = await self.request(join_tokens(tokens))
        code, payload = parse_response(line)
        if code != ErrorCode.OK:
            raise ClientError(code, payload)
        return payload

    async def request(self, command: str) -> str:
        """Send a raw command line and return the raw response line."""
        try:
            return await asyncio.wait_for(self._exchange(command), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ClientError(ErrorCode.COMM, f"Timed out talking to {self.host}:{self.port}") from None
        except OSError as e:
            raise ClientError(ErrorCode.COMM, f"Can't talk to {self.host}:{self.port}: {e}") from e

    async def _exchange(self, command: str) -> str:
        logger.debug("Sending to %s:%d: %s", self.host, self.port, command)
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            writer.write(f"{command}\r\n".encode("utf-8"))
            await writer.drain()
            data = await reader.readline()
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        if not data:
            raise ClientError(ErrorCode.COMM, "Server closed the connection without a response")
        line = data.decode("utf-8", errors="replace")
        logger.debug("Received: %s", line.rstrip("\n"))
        return line

    # -------------------------------------------------------------------------
    # Playlist
    # -------------------------------------------------------------------------

    async def add(self, *streams: str) -> None:
        await self.send_command("add", *streams)

    async def playlist(self) -> list[str]:
        return tokenize(await self.send_command("playlist"))

    async def clear(self) -> None:
        await self.send_command("clear")

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def play(self, index: int) -> None:
        """Play the playlist entry at `index`."""
        await self.send_command("play", str(index))

    async def resume(self) -> None:
        """Resume after pause, without changing the playlist position."""
        await self.send_command("play")

    async def stop(self) -> None:
        await self.send_command("stop")

    async def pause(self) -> None:
        await self.send_command("pause")

    async def next(self) -> None:
        await self.send_command("next")

    async def prev(self) -> None:
        await self.send_command("prev")

    async def seek(self, msec: int) -> None:
        await self.send_command("seek", str(msec))

    # -------------------------------------------------------------------------
    # Audio
    # -------------------------------------------------------------------------

    async def get_volume(self) -> int:
        payload = await self.send_command("volume")
        return _int_field(payload, payload)

    async def set_volume(self, volume: int) -> None:
        await self.send_command("volume", str(volume))

    async def get_eq(self) -> list[int]:
        """Return the ten equalizer bands (0..200, 100 is flat)."""
        payload = await self.send_command("eq")
        levels = [_int_field(value, payload) for value in payload.split()]
        if len(levels) != 10:
            raise ClientError(ErrorCode.RESPONSE, f"Unexpected eq response: {payload!r}")
        return levels

    async def set_eq(self, levels: list[int]) -> None:
        await self.send_command("eq", *(str(level) for level in levels))

    # -------------------------------------------------------------------------
    # Status and server
    # -------------------------------------------------------------------------

    async def status(self) -> PlaybackStatus:
        return parse_status(await self.send_command("status"))

    async def meta_info(self) -> MetaInfo:
        return parse_meta_info(await self.send_command("meta-info"))

    async def shutdown(self) -> None:
        await self.send_command("shutdown")

    async def version(self) -> tuple[int, int]:
        payload = await self.send_command("version")
        major, _, minor = payload.partition(".")
        return _int_field(major, payload), _int_field(minor, payload)
