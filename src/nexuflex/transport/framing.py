"""Content-Length framing for JSON-RPC messages on a byte stream.

Each message on the wire is a header block followed by a JSON body:

    Content-Length: <length>\\r\\n
    [Content-Type: <type>]\\r\\n
    \\r\\n
    <json-rpc-message>

Content-Length counts the UTF-8 bytes of the body and is the only
required header.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

CRLF = b"\r\n"
HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
MAX_MESSAGE_SIZE = 10 * 1024 * 1024


class FramingError(Exception):
    """The byte stream does not contain a well-framed JSON-RPC message."""


def parse_header(header_bytes: bytes) -> dict[str, str]:
    """Parse a header block (without the blank separator line).

    Returns:
        Header names mapped to their stripped values.

    Raises:
        FramingError: If a line is malformed or Content-Length is missing,
            not an integer, or negative.
    """
    if not header_bytes:
        raise FramingError("Empty header block")

    try:
        text = header_bytes.decode(HEADER_ENCODING)
    except UnicodeDecodeError as e:
        raise FramingError(f"Header contains non-ASCII characters: {e}") from e

    headers: dict[str, str] = {}
    for line in filter(None, text.split("\r\n")):
        name, sep, value = line.partition(":")
        if not sep:
            raise FramingError(f"Malformed header line (no colon): {line!r}")
        name = name.strip()
        if not name:
            raise FramingError(f"Empty header name in line: {line!r}")
        headers[name] = value.strip()

    raw_length = headers.get("Content-Length")
    if raw_length is None:
        raise FramingError("Missing required Content-Length header")
    try:
        length = int(raw_length)
    except ValueError as e:
        raise FramingError(f"Invalid Content-Length value: {raw_length!r}") from e
    if length < 0:
        raise FramingError(f"Negative Content-Length: {length}")

    return headers


async def _read_header_block(reader: asyncio.StreamReader) -> bytes | None:
    lines: list[bytes] = []
    while True:
        try:
            line = await reader.readuntil(CRLF)
        except asyncio.IncompleteReadError as e:
            if not lines and not e.partial:
                return None  # Clean EOF at message boundary
            raise FramingError("Unexpected EOF while reading headers") from e
        except asyncio.LimitOverrunError as e:
            raise FramingError(f"Header line too long: {e}") from e
        if line == CRLF:
            return b"".join(lines).removesuffix(CRLF)
        lines.append(line)


async def read_message(
    reader: asyncio.StreamReader,
    *,
    max_message_size: int = MAX_MESSAGE_SIZE,
) -> dict[str, Any] | None:
    """Read one framed message from the stream.

    Returns:
        The decoded JSON object, or None on EOF between messages.

    Raises:
        FramingError: On malformed headers, truncated bodies, oversize
            messages or bodies that are not a JSON object.
    """
    header_bytes = await _read_header_block(reader)
    if header_bytes is None:
        return None

    length = int(parse_header(header_bytes)["Content-Length"])
    if length > max_message_size:
        raise FramingError(f"Message size {length} exceeds maximum {max_message_size}")

    try:
        body = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise FramingError(
            f"Incomplete message body: expected {length} bytes, got {len(e.partial)}"
        ) from e

    try:
        message = json.loads(body.decode(CONTENT_ENCODING))
    except UnicodeDecodeError as e:
        raise FramingError(f"Invalid UTF-8 in message body: {e}") from e
    except json.JSONDecodeError as e:
        raise FramingError(f"Invalid JSON in message body: {e}") from e

    if not isinstance(message, dict):
        raise FramingError(f"JSON-RPC message must be an object, got {type(message).__name__}")
    return message


def encode_message(msg: dict[str, Any]) -> bytes:
    """Serialize a message with its Content-Length header."""
    try:
        body = json.dumps(msg, separators=(",", ":")).encode(CONTENT_ENCODING)
    except (TypeError, ValueError) as e:
        raise FramingError(f"Message cannot be serialized to JSON: {e}") from e
    header = f"Content-Length: {len(body)}\r\n\r\n".encode(HEADER_ENCODING)
    return header + body


async def write_message(
    writer: asyncio.StreamWriter,
    msg: dict[str, Any],
    *,
    drain: bool = True,
) -> None:
    """Write one framed message. Header and body go out in a single write."""
    writer.write(encode_message(msg))
    if drain:
        await writer.drain()
