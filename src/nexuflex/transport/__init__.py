"""JSON-RPC transport to the nexuflex server."""

from nexuflex.transport.framing import (
    MAX_MESSAGE_SIZE,
    FramingError,
    encode_message,
    parse_header,
    read_message,
    write_message,
)
from nexuflex.transport.rpc import CANCEL_NOTIFICATION, STREAM_NOTIFICATION, RpcChannel

__all__ = [
    "CANCEL_NOTIFICATION",
    "MAX_MESSAGE_SIZE",
    "STREAM_NOTIFICATION",
    "FramingError",
    "RpcChannel",
    "encode_message",
    "parse_header",
    "read_message",
    "write_message",
]
