"""
Cadence Web Layer.

This package provides an optional HTTP/JSON-RPC/REST API over the same command
processor the TCP control server uses.

Components:
- WebServer: FastAPI application with all routes
- JsonRpcHandler: JSON-RPC command interface
"""

from cadence.web.jsonrpc import JsonRpcHandler
from cadence.web.server import WebServer

__all__ = [
    "JsonRpcHandler",
    "WebServer",
]
