"""JSON-RPC channel to a nexuflex server over TCP (optionally TLS).

One background reader task owns the read side of the stream. Responses are
matched to waiting calls by request id; streaming output arrives as
``command/output`` notifications carrying the ``requestId`` of the request
that opened the stream, and the stream ends with that request's response.

Usage:
    channel = await RpcChannel.open("localhost", 50051, timeout=5.0)
    result = await channel.call("connect", {"address": "localhost", "port": 50051}, timeout=5.0)
    async for event in channel.stream("executeStreamingCommand", params, timeout=600.0):
        print(event["content"])
    await channel.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import ssl
from collections.abc import AsyncIterator
from typing import Any

from nexuflex.errors import (
    ConnectionFailed,
    ProtocolError,
    RequestTimeout,
    TransportError,
)
from nexuflex.logging import TRACE, get_logger, redact
from nexuflex.transport.framing import (
    MAX_MESSAGE_SIZE,
    FramingError,
    read_message,
    write_message,
)

log = get_logger("rpc")

STREAM_NOTIFICATION = "command/output"
CANCEL_NOTIFICATION = "$/cancelRequest"

# Queued after the last event of a stream
_END_OF_STREAM = object()


class RpcChannel:
    """A single JSON-RPC connection with request/response correlation."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        peer: str = "server",
        max_message_size: int = MAX_MESSAGE_SIZE,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._peer = peer
        self._max_message_size = max_message_size
        self._next_id = 1
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._streams: dict[int, asyncio.Queue[Any]] = {}
        self._write_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()
        self._failure: TransportError | None = None
        self._closed = False
        self._reader_task = asyncio.create_task(self._read_loop(), name=f"rpc-reader[{peer}]")

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        *,
        use_tls: bool = False,
        timeout: float = 5.0,
        ssl_context: ssl.SSLContext | None = None,
    ) -> RpcChannel:
        """Open a TCP connection and wrap it in a channel.

        Raises:
            ConnectionFailed: If the connection cannot be established within
                the timeout.
        """
        context = (ssl_context or ssl.create_default_context()) if use_tls else None
        peer = f"{host}:{port}"
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, ssl=context),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionFailed(f"connection to {peer} timed out after {timeout:g}s") from e
        except OSError as e:
            raise ConnectionFailed(f"failed to connect to {peer}: {e}") from e
        log.debug("Channel open to %s (tls=%s)", peer, use_tls)
        return cls(reader, writer, peer=peer)

    @property
    def peer(self) -> str:
        return self._peer

    @property
    def closed(self) -> bool:
        """True once closed locally or after the connection failed."""
        return self._closed or self._failure is not None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def call(self, method: str, params: dict[str, Any], *, timeout: float) -> dict[str, Any]:
        """Send a request and wait for its result.

        Raises:
            RequestTimeout: No response within ``timeout`` seconds.
            ProtocolError: The server answered with a JSON-RPC error.
            TransportError: The channel is closed or the connection broke.
        """
        self._ensure_open()
        request_id = self._allocate_id()
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        completed = False
        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            result = await asyncio.wait_for(future, timeout)
            completed = True
            return result
        except asyncio.TimeoutError:
            raise RequestTimeout(method, timeout) from None
        except TransportError:
            completed = True
            raise
        finally:
            self._pending.pop(request_id, None)
            if not completed:
                self._schedule_cancel(request_id)

    async def stream(
        self, method: str, params: dict[str, Any], *, timeout: float
    ) -> AsyncIterator[dict[str, Any]]:
        """Send a request and yield its output notifications in arrival order.

        The iterator ends when the server sends the final response for the
        request. ``timeout`` bounds the whole stream, not each event.
        Closing the iterator early cancels the request on the server.
        """
        self._ensure_open()
        request_id = self._allocate_id()
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._streams[request_id] = queue
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        finished = False
        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError
                item = await asyncio.wait_for(queue.get(), remaining)
                if item is _END_OF_STREAM:
                    finished = True
                    return
                if isinstance(item, TransportError):
                    finished = True
                    raise item
                yield item
        except asyncio.TimeoutError:
            raise RequestTimeout(method, timeout) from None
        finally:
            self._streams.pop(request_id, None)
            if not finished:
                self._schedule_cancel(request_id)

    async def notify(self, method: str, params: dict[str, Any]) -> None:
        """Send a notification (no response expected)."""
        self._ensure_open()
        await self._send({"jsonrpc": "2.0", "method": method, "params": params})

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._reader_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._reader_task
        for task in list(self._background):
            task.cancel()
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            log.debug("Error closing channel to %s: %s", self._peer, e)
        log.debug("Channel to %s closed", self._peer)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportError(f"channel to {self._peer} is closed")
        if self._failure is not None:
            raise TransportError(str(self._failure))

    def _allocate_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    async def _send(self, message: dict[str, Any]) -> None:
        if log.isEnabledFor(TRACE):
            log.log(TRACE, "-> %s", redact(message))
        async with self._write_lock:
            try:
                await write_message(self._writer, message)
            except FramingError as e:
                raise ProtocolError(str(e)) from e
            except OSError as e:
                raise TransportError(f"failed to send to {self._peer}: {e}") from e

    def _schedule_cancel(self, request_id: int) -> None:
        if self.closed:
            return
        task = asyncio.get_running_loop().create_task(self._send_cancel(request_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_cancel(self, request_id: int) -> None:
        try:
            await self.notify(CANCEL_NOTIFICATION, {"id": request_id})
        except TransportError as e:
            log.debug("Could not cancel request %s: %s", request_id, e)

    async def _read_loop(self) -> None:
        failure = TransportError(f"channel to {self._peer} is closed")
        try:
            while True:
                message = await read_message(self._reader, max_message_size=self._max_message_size)
                if message is None:
                    failure = TransportError(f"connection to {self._peer} closed by server")
                    break
                if log.isEnabledFor(TRACE):
                    log.log(TRACE, "<- %s", redact(message))
                self._dispatch(message)
        except FramingError as e:
            failure = ProtocolError(f"invalid message from {self._peer}: {e}")
        except OSError as e:
            failure = TransportError(f"connection to {self._peer} lost: {e}")
        finally:
            self._fail_all(failure)

    def _dispatch(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if method is None and "id" in message:
            self._resolve(message)
        elif method == STREAM_NOTIFICATION:
            params = message.get("params") or {}
            queue = self._streams.get(params.get("requestId"))
            if queue is None:
                log.debug("Dropping output for unknown stream %s", params.get("requestId"))
            else:
                queue.put_nowait(params)
        else:
            log.debug("Ignoring unsolicited message %r from %s", method, self._peer)

    def _resolve(self, message: dict[str, Any]) -> None:
        request_id = message["id"]
        error = message.get("error")
        failure: ProtocolError | None = None
        if error is not None:
            if isinstance(error, dict):
                failure = ProtocolError(str(error.get("message", "server error")), error.get("code"))
            else:
                failure = ProtocolError(str(error))

        future = self._pending.get(request_id)
        if future is not None:
            if not future.done():
                if failure is not None:
                    future.set_exception(failure)
                else:
                    result = message.get("result")
                    future.set_result(result if isinstance(result, dict) else {})
            return

        queue = self._streams.get(request_id)
        if queue is not None:
            queue.put_nowait(failure if failure is not None else _END_OF_STREAM)
            return

        log.debug("Dropping response for unknown request %s", request_id)

    def _fail_all(self, failure: TransportError) -> None:
        if self._failure is None and not self._closed:
            log.warning("%s", failure)
        self._failure = failure
        for future in self._pending.values():
            if not future.done():
                future.set_exception(failure)
        for queue in self._streams.values():
            queue.put_nowait(failure)
