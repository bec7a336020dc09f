"""Root pytest configuration and shared fakes."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import pytest

from nexuflex.config import Config, reset_config
from nexuflex.core.session import ClientSession, SessionObserver, StatusSnapshot
from nexuflex.errors import TransportError

pytest_plugins = ("pytest_asyncio",)


class FakeChannel:
    """In-memory channel answering calls from scripted responses.

    ``responses`` maps a method name to a dict result, an exception to raise,
    or a list of either consumed one per call. ``streams`` maps a method to
    the events it yields, where an exception item is raised mid-stream.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        streams: dict[str, list[Any]] | None = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.streams = dict(streams or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.is_closed = False

    @property
    def closed(self) -> bool:
        return self.is_closed

    async def call(self, method: str, params: dict[str, Any], *, timeout: float) -> dict[str, Any]:
        self.calls.append((method, params))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        if method not in self.responses:
            raise TransportError(f"unexpected call {method}")
        response = self.responses[method]
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def stream(
        self, method: str, params: dict[str, Any], *, timeout: float
    ) -> AsyncGenerator[dict[str, Any], None]:
        self.calls.append((method, params))
        for item in self.streams.get(method, []):
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.is_closed = True

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


class RecordingObserver(SessionObserver):
    """Observer that keeps every event it receives."""

    def __init__(self, choice: int | None = None) -> None:
        self.statuses: list[StatusSnapshot] = []
        self.outputs: list[str] = []
        self.progress: list[tuple[str, int]] = []
        self.choice = choice
        self.offered: list[Any] = []

    def on_status_changed(self, snapshot: StatusSnapshot) -> None:
        self.statuses.append(snapshot)

    def on_output(self, text: str) -> None:
        self.outputs.append(text)

    def on_progress(self, text: str, percent: int) -> None:
        self.progress.append((text, percent))

    async def select_server(self, servers: list[Any]) -> int | None:
        self.offered = list(servers)
        return self.choice


CONNECT_OK = {"success": True, "serverName": "app01", "version": "1.2.0"}
LOGIN_OK = {
    "success": True,
    "sessionToken": "tok-1",
    "userInfo": {"username": "bob", "displayName": "Bob"},
}


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep tests away from the real user config and environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("NX_LOG", "NX_SERVER", "NX_PORT"):
        monkeypatch.delenv(name, raising=False)
    reset_config()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel({"connect": CONNECT_OK, "login": LOGIN_OK})


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def session(config: Config, observer: RecordingObserver, channel: FakeChannel) -> ClientSession:
    """ClientSession whose connections all go to ``channel``."""

    async def factory(address: str, port: int, use_tls: bool, timeout: float) -> FakeChannel:
        return channel

    return ClientSession(config, observer, channel_factory=factory)
