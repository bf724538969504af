"""
JSON-RPC Facade for Cadence.

Exposes the control protocol over HTTP. A request carries the command as a
token array, so no quoting is needed on this side:

    {"id": 1, "method": "cadence.request", "params": ["add", "/music/a b.flac"]}

and the response carries the same code and payload a TCP client would see:

    {"id": 1, "method": "cadence.request", "params": [...],
     "result": {"code": 0, "payload": "OK"}}

Command-level failures (unknown verb, playlist empty, ...) are regular results
with a non-zero code. JSON-RPC `error` objects are reserved for malformed
requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cadence.protocol.commands import CommandProcessor

logger = logging.getLogger(__name__)

REQUEST_METHOD = "cadence.request"

# Standard JSON-RPC error codes
ERROR_INVALID_REQUEST = -32600
ERROR_METHOD_NOT_FOUND = -32601
ERROR_INVALID_PARAMS = -32602
ERROR_INTERNAL_ERROR = -32603


def build_error_response(code: int, message: str) -> dict[str, Any]:
    """
    Build a JSON-RPC error object.

    Args:
        code: Error code
        message: Error message

    Returns:
        Error dictionary
    """
    return {"code": code, "message": message}


class JsonRpcHandler:
    """
    JSON-RPC request handler.

    Runs commands through the same `CommandProcessor` as the control server,
    on a worker thread, one at a time.
    """

    def __init__(self, processor: CommandProcessor) -> None:
        self.processor = processor
        self._lock = asyncio.Lock()

    async def handle_request(
        self,
        request: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Handle a JSON-RPC request.

        Args:
            request: The JSON-RPC request object with id, method, and params.

        Returns:
            JSON-RPC response object.
        """
        request_id = request.get("id")
        method = request.get("method", "")
        params = request.get("params", [])

        # Build base response
        response: dict[str, Any] = {
            "id": request_id,
            "method": method,
            "params": params,
        }

        if method != REQUEST_METHOD:
            response["error"] = build_error_response(
                ERROR_METHOD_NOT_FOUND,
                f"Unknown method: {method}",
            )
            return response

        if not isinstance(params, list) or len(params) == 0:
            response["error"] = build_error_response(
                ERROR_INVALID_PARAMS,
                f"{REQUEST_METHOD} requires [command, arg, ...]",
            )
            return response

        if any(isinstance(p, (dict, list, bool)) or p is None for p in params):
            response["error"] = build_error_response(
                ERROR_INVALID_PARAMS,
                "Command tokens must be strings or numbers",
            )
            return response

        try:
            response["result"] = await self.execute_command([str(p) for p in params])
        except Exception as e:
            logger.exception("Error executing command %s: %s", params, e)
            response["error"] = build_error_response(ERROR_INTERNAL_ERROR, str(e))

        return response

    async def execute_command(self, tokens: list[str]) -> dict[str, Any]:
        """
        Execute a single command.

        Args:
            tokens: Command array [verb, arg1, arg2, ...]

        Returns:
            {"code": <int>, "payload": <str>}
        """
        async with self._lock:
            result = await asyncio.to_thread(self.processor.execute, tokens)
        return {"code": int(result.code), "payload": result.payload}
