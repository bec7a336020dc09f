"""Tests for RpcChannel against a loopback JSON-RPC server."""

from __future__ import annotations

import asyncio
import socket
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from nexuflex.errors import ConnectionFailed, ProtocolError, RequestTimeout, TransportError
from nexuflex.transport.framing import read_message, write_message
from nexuflex.transport.rpc import CANCEL_NOTIFICATION, STREAM_NOTIFICATION, RpcChannel

Handler = Callable[[dict[str, Any], asyncio.StreamWriter], Awaitable[None]]


class LoopbackServer:
    """Serves one framed JSON-RPC connection with a per-message handler."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.received: list[dict[str, Any]] = []
        self.server: asyncio.AbstractServer | None = None
        self.port = 0

    async def __aenter__(self) -> LoopbackServer:
        self.server = await asyncio.start_server(self._serve, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc: object) -> None:
        assert self.server is not None
        self.server.close()
        await self.server.wait_closed()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                message = await read_message(reader)
                if message is None:
                    break
                self.received.append(message)
                await self.handler(message, writer)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()


async def reply(writer: asyncio.StreamWriter, request_id: int, result: dict[str, Any]) -> None:
    await write_message(writer, {"jsonrpc": "2.0", "id": request_id, "result": result})


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestCall:
    """Request/response correlation."""

    @pytest.mark.asyncio
    async def test_call_returns_result(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            await reply(writer, msg["id"], {"success": True, "echo": msg["params"]["address"]})

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                result = await channel.call("connect", {"address": "app01"}, timeout=2.0)
            finally:
                await channel.close()

        assert result == {"success": True, "echo": "app01"}
        assert server.received[0]["method"] == "connect"
        assert server.received[0]["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self) -> None:
        """Responses are matched by id, not by arrival order."""
        held: list[dict[str, Any]] = []

        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            held.append(msg)
            if len(held) == 2:
                for pending in reversed(held):
                    await reply(writer, pending["id"], {"method": pending["method"]})

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                first, second = await asyncio.gather(
                    channel.call("getAliases", {}, timeout=2.0),
                    channel.call("getAvailableServices", {}, timeout=2.0),
                )
            finally:
                await channel.close()

        assert first == {"method": "getAliases"}
        assert second == {"method": "getAvailableServices"}

    @pytest.mark.asyncio
    async def test_error_response_raises_protocol_error(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            await write_message(
                writer,
                {"jsonrpc": "2.0", "id": msg["id"], "error": {"code": -32601, "message": "no such method"}},
            )

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                with pytest.raises(ProtocolError, match="no such method") as exc_info:
                    await channel.call("bogus", {}, timeout=2.0)
            finally:
                await channel.close()

        assert exc_info.value.code == -32601

    @pytest.mark.asyncio
    async def test_timeout_sends_cancel(self) -> None:
        """A timed-out call raises RequestTimeout and cancels the request."""

        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            pass

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                with pytest.raises(RequestTimeout, match="executeCommand timed out"):
                    await channel.call("executeCommand", {}, timeout=0.05)
                await wait_for(lambda: len(server.received) == 2)
            finally:
                await channel.close()

        request, cancel = server.received
        assert cancel["method"] == CANCEL_NOTIFICATION
        assert cancel["params"] == {"id": request["id"]}
        assert "id" not in cancel

    @pytest.mark.asyncio
    async def test_server_disconnect_fails_pending_call(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            writer.close()

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                with pytest.raises(TransportError):
                    await channel.call("login", {}, timeout=2.0)
                assert channel.closed
                with pytest.raises(TransportError):
                    await channel.call("login", {}, timeout=2.0)
            finally:
                await channel.close()


class TestStream:
    """Streaming requests."""

    @pytest.mark.asyncio
    async def test_stream_yields_events_until_response(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            for content in ("a", "b", "c"):
                await write_message(
                    writer,
                    {
                        "jsonrpc": "2.0",
                        "method": STREAM_NOTIFICATION,
                        "params": {"requestId": msg["id"], "type": "TEXT", "content": content},
                    },
                )
            await reply(writer, msg["id"], {})

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                events = [
                    event["content"]
                    async for event in channel.stream("executeStreamingCommand", {}, timeout=2.0)
                ]
            finally:
                await channel.close()

        assert events == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_stream_error_response(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            await write_message(
                writer,
                {"jsonrpc": "2.0", "id": msg["id"], "error": {"code": 1, "message": "stream refused"}},
            )

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            try:
                with pytest.raises(ProtocolError, match="stream refused"):
                    async for _ in channel.stream("executeStreamingCommand", {}, timeout=2.0):
                        pass
            finally:
                await channel.close()

    @pytest.mark.asyncio
    async def test_stream_timeout_cancels(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            if msg.get("method") == "executeStreamingCommand":
                await write_message(
                    writer,
                    {
                        "jsonrpc": "2.0",
                        "method": STREAM_NOTIFICATION,
                        "params": {"requestId": msg["id"], "type": "TEXT", "content": "first"},
                    },
                )

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            seen: list[str] = []
            try:
                with pytest.raises(RequestTimeout):
                    async for event in channel.stream("executeStreamingCommand", {}, timeout=0.2):
                        seen.append(event["content"])
                await wait_for(lambda: len(server.received) == 2)
            finally:
                await channel.close()

        assert seen == ["first"]
        assert server.received[1]["method"] == CANCEL_NOTIFICATION


class TestLifecycle:
    """Opening and closing channels."""

    @pytest.mark.asyncio
    async def test_open_refused(self) -> None:
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]

        with pytest.raises(ConnectionFailed, match=f"127.0.0.1:{port}"):
            await RpcChannel.open("127.0.0.1", port, timeout=2.0)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        async def handler(msg: dict[str, Any], writer: asyncio.StreamWriter) -> None:
            pass

        async with LoopbackServer(handler) as server:
            channel = await RpcChannel.open("127.0.0.1", server.port, timeout=2.0)
            await channel.close()
            await channel.close()

            assert channel.closed
            with pytest.raises(TransportError, match="closed"):
                await channel.call("keepAlive", {}, timeout=1.0)
