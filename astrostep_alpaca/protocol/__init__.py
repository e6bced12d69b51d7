"""
Protocol package for AstroStep serial communication.
"""

from astrostep_alpaca.protocol.transport import TransportChannel, SerialTransport
from astrostep_alpaca.protocol.session import DeviceSession
from astrostep_alpaca.protocol.encoder import (
    Command,
    QueryKind,
    ReplyShape,
    encode_command,
    decode_reply,
)

__all__ = [
    "TransportChannel",
    "SerialTransport",
    "DeviceSession",
    "Command",
    "QueryKind",
    "ReplyShape",
    "encode_command",
    "decode_reply",
]
