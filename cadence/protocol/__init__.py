"""
Control protocol for Cadence.

This package contains the text protocol spoken on the control port:
- tokenizer: splitting request lines into arguments
- errors: wire status codes
- commands: the command dispatcher and playback state machine
- control: the asyncio TCP server (port 30001)
- client: an async client library
"""

from cadence.protocol.commands import CommandProcessor, Response
from cadence.protocol.control import ControlServer
from cadence.protocol.errors import ControlError, ErrorCode

__all__ = ["CommandProcessor", "ControlError", "ControlServer", "ErrorCode", "Response"]
