"""Client session: connection and authentication lifecycle against one server.

ClientSession owns the RPC channel, the session token and the service
context. The UI drives it through async operations and learns about state
changes through a SessionObserver; the session never renders anything.

State model:
    connection_state: DISCONNECTED -> CONNECTING -> CONNECTED | CONNECTION_ERROR
    session_state:    NO_SESSION -> AUTHENTICATED -> NO_SESSION | SESSION_EXPIRED

The session token is non-empty exactly when session_state is AUTHENTICATED.
Token and session state are written under one asyncio.Lock, shared by the
foreground operations (login, logout) and the keep-alive task.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from nexuflex.config.schema import DEFAULT_PORT, Config
from nexuflex.core.completion import Completion, common_prefix
from nexuflex.core.discovery import DiscoveryBackend, discovery_from_config
from nexuflex.errors import (
    AliasRejected,
    CommandRejected,
    ConnectRejected,
    LoginRejected,
    LogoutRejected,
    NexuflexError,
    NotAuthenticatedError,
    NotConnectedError,
    ProtocolError,
    TransportError,
)
from nexuflex.logging import get_logger
from nexuflex.transport.rpc import RpcChannel
from nexuflex.types import (
    AliasInfo,
    AutoCompleteRequest,
    AutoCompleteResponse,
    CommandHelpRequest,
    CommandHelpResponse,
    CommandInfo,
    CommandOutput,
    CommandRequest,
    CommandResponse,
    ConnectRequest,
    ConnectResponse,
    CreateAliasRequest,
    CreateAliasResponse,
    DeleteAliasRequest,
    DeleteAliasResponse,
    GetAliasesRequest,
    GetAliasesResponse,
    KeepAliveRequest,
    KeepAliveResponse,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    OutputType,
    ServerInfo,
    ServiceCommandsRequest,
    ServiceCommandsResponse,
    ServiceInfo,
    ServicesRequest,
    ServicesResponse,
    SessionStatus,
    StatusInfo,
    UserInfo,
)

log = get_logger("session")

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CONNECTION_ERROR = "connection_error"


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    AUTHENTICATED = "authenticated"
    LOGIN_REQUIRED = "login_required"
    SESSION_EXPIRING = "session_expiring"
    SESSION_EXPIRED = "session_expired"


@dataclass(frozen=True)
class ServerIdentity:
    """The server the session is connected to."""

    name: str
    version: str
    tls_enabled: bool
    address: str
    port: int


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of the session for status lines and callbacks."""

    connection_state: ConnectionState
    session_state: SessionState
    server: ServerIdentity | None = None
    username: str = ""
    service_context: str = ""
    remaining_minutes: int | None = None

    @property
    def server_name(self) -> str:
        return self.server.name if self.server else ""


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a successful unary command."""

    output: str
    status_message: str
    service_context: str
    status: StatusSnapshot


class SessionObserver:
    """Receives session events. Subclass and override what you need.

    The default implementation ignores output and picks no server.
    """

    def on_status_changed(self, snapshot: StatusSnapshot) -> None:
        pass

    def on_output(self, text: str) -> None:
        pass

    def on_progress(self, text: str, percent: int) -> None:
        pass

    async def select_server(self, servers: list[ServerInfo]) -> int | None:
        """Pick one of the discovered servers by index, or None to take the first."""
        return None


class Channel(Protocol):
    """What the session needs from a transport channel.

    RpcChannel is the production implementation; tests substitute an
    in-memory fake.
    """

    @property
    def closed(self) -> bool: ...

    async def call(self, method: str, params: dict[str, Any], *, timeout: float) -> dict[str, Any]: ...

    def stream(
        self, method: str, params: dict[str, Any], *, timeout: float
    ) -> AsyncGenerator[dict[str, Any], None]: ...

    async def close(self) -> None: ...


ChannelFactory = Callable[[str, int, bool, float], Awaitable[Channel]]


async def open_rpc_channel(address: str, port: int, use_tls: bool, timeout: float) -> Channel:
    return await RpcChannel.open(address, port, use_tls=use_tls, timeout=timeout)


class ClientSession:
    """One logical connection to a nexuflex server and its session-scoped RPCs."""

    def __init__(
        self,
        config: Config | None = None,
        observer: SessionObserver | None = None,
        *,
        channel_factory: ChannelFactory = open_rpc_channel,
        discovery: DiscoveryBackend | None = None,
    ) -> None:
        self.config = config or Config()
        self.observer = observer or SessionObserver()
        self._channel_factory = channel_factory
        self._discovery = discovery or discovery_from_config(self.config.server)
        self._lock = asyncio.Lock()
        self._keep_alive_task: asyncio.Task[None] | None = None

        self._channel: Channel | None = None
        self._connection_state = ConnectionState.DISCONNECTED
        self._session_state = SessionState.NO_SESSION
        self._token = ""
        self._server: ServerIdentity | None = None
        self._username = ""
        self._service_context = ""
        self._remaining_minutes: int | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def session_state(self) -> SessionState:
        return self._session_state

    @property
    def session_token(self) -> str:
        return self._token

    @property
    def server(self) -> ServerIdentity | None:
        return self._server

    @property
    def username(self) -> str:
        return self._username

    @property
    def service_context(self) -> str:
        return self._service_context

    @property
    def is_connected(self) -> bool:
        return (
            self._channel is not None
            and not self._channel.closed
            and self._connection_state == ConnectionState.CONNECTED
        )

    @property
    def is_authenticated(self) -> bool:
        return self.is_connected and self._session_state == SessionState.AUTHENTICATED

    @property
    def keep_alive_running(self) -> bool:
        return self._keep_alive_task is not None and not self._keep_alive_task.done()

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(
            connection_state=self._connection_state,
            session_state=self._session_state,
            server=self._server,
            username=self._username,
            service_context=self._service_context,
            remaining_minutes=self._remaining_minutes,
        )

    def set_service_context(self, service: str) -> None:
        """Select the service that unqualified commands are sent to ("" clears it)."""
        self._service_context = service.strip()
        self._notify()

    def _notify(self) -> None:
        self.observer.on_status_changed(self.snapshot())

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(
        self, address: str, port: int = DEFAULT_PORT, use_tls: bool = False
    ) -> ServerIdentity:
        """Connect to a server, replacing any existing connection.

        Raises:
            TransportError: The channel could not be opened or the handshake
                failed on the wire. The session ends in CONNECTION_ERROR.
            ConnectRejected: The server refused the handshake. The session
                ends in CONNECTION_ERROR.
        """
        await self.close()
        self._connection_state = ConnectionState.CONNECTING
        self._notify()

        timeout = self.config.timeouts.connect
        log.info("Connecting to %s:%d (tls=%s)", address, port, use_tls)
        try:
            channel = await self._channel_factory(address, port, use_tls, timeout)
        except TransportError as e:
            log.warning("Connection to %s:%d failed: %s", address, port, e)
            await self._enter_connection_error()
            raise

        try:
            response = await self._call(
                channel,
                "connect",
                ConnectRequest(address=address, port=port, use_tls=use_tls),
                ConnectResponse,
                timeout,
            )
            if not response.success:
                raise ConnectRejected(response.error_message)
        except (NexuflexError, asyncio.CancelledError):
            await channel.close()
            await self._enter_connection_error()
            raise

        server = ServerIdentity(
            name=response.server_name or address,
            version=response.version,
            tls_enabled=use_tls,
            address=address,
            port=port,
        )
        async with self._lock:
            self._channel = channel
            self._server = server
            self._connection_state = ConnectionState.CONNECTED
            self._session_state = SessionState.NO_SESSION
            self._token = ""
        log.info("Connected to %s (version %s)", server.name, server.version or "unknown")
        self._notify()
        return server

    async def discover_servers(self, timeout: float | None = None) -> list[ServerInfo]:
        if timeout is None:
            timeout = self.config.server.discover_timeout
        servers = await self._discovery.discover(timeout)
        log.debug("Discovered %d server(s)", len(servers))
        return servers

    async def discover_and_connect(self, timeout: float | None = None) -> ServerIdentity | None:
        """Discover servers, let the observer pick one and connect to it.

        Returns None if no server answered. The first server is used when
        the observer does not choose.
        """
        servers = await self.discover_servers(timeout)
        if not servers:
            return None
        choice = await self.observer.select_server(servers)
        if choice is None:
            choice = 0
        if not 0 <= choice < len(servers):
            raise ValueError(f"server index {choice} out of range (0-{len(servers) - 1})")
        server = servers[choice]
        return await self.connect(server.address, server.port, server.tls_enabled)

    async def close(self) -> None:
        """Close the connection and reset the session. Safe to call repeatedly."""
        await self.stop_keep_alive()
        async with self._lock:
            channel, self._channel = self._channel, None
            changed = (
                channel is not None
                or self._connection_state != ConnectionState.DISCONNECTED
                or self._session_state != SessionState.NO_SESSION
            )
            self._connection_state = ConnectionState.DISCONNECTED
            self._session_state = SessionState.NO_SESSION
            self._token = ""
            self._server = None
            self._username = ""
            self._service_context = ""
            self._remaining_minutes = None
        if channel is not None:
            await channel.close()
            log.info("Disconnected")
        if changed:
            self._notify()

    async def _enter_connection_error(self) -> None:
        async with self._lock:
            self._connection_state = ConnectionState.CONNECTION_ERROR
            self._session_state = SessionState.NO_SESSION
            self._token = ""
        self._notify()

    async def _drop_connection(self) -> None:
        await self.stop_keep_alive()
        async with self._lock:
            channel, self._channel = self._channel, None
            self._server = None
            self._username = ""
            self._remaining_minutes = None
        if channel is not None:
            await channel.close()
        await self._enter_connection_error()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> UserInfo:
        """Authenticate and store the session token.

        A rejected login changes nothing and the channel stays open for
        another attempt. A transport failure drops the connection.

        Raises:
            NotConnectedError: No connection.
            LoginRejected: The server refused the credentials.
            TransportError: The request failed on the wire.
        """
        channel = await self._live_channel()
        try:
            response = await self._call(
                channel,
                "login",
                LoginRequest(username=username, password=password),
                LoginResponse,
                self.config.timeouts.connect,
            )
        except TransportError:
            if self._channel is channel:
                await self._drop_connection()
            raise

        if not response.success:
            log.info("Login rejected for %s: %s", username, response.error_message)
            raise LoginRejected(response.error_message)
        if not response.session_token:
            raise ProtocolError("login succeeded without a session token")

        async with self._lock:
            self._token = response.session_token
            self._session_state = SessionState.AUTHENTICATED
            self._username = response.user_info.username or username
            self._remaining_minutes = None
        log.info("Logged in as %s", self._username)
        self._notify()
        return response.user_info

    async def logout(self) -> None:
        """End the session on the server. The connection stays open.

        Raises:
            NotConnectedError: No connection.
            NotAuthenticatedError: Not logged in.
            LogoutRejected: The server refused; the session is kept.
        """
        channel = await self._live_channel(authenticated=True)
        token = self._token
        response = await self._call(
            channel,
            "logout",
            LogoutRequest(session_token=token),
            LogoutResponse,
            self.config.timeouts.connect,
        )
        if not response.success:
            raise LogoutRejected(response.error_message)

        async with self._lock:
            if self._token == token:
                self._token = ""
                self._session_state = SessionState.NO_SESSION
                self._username = ""
                self._remaining_minutes = None
        await self.stop_keep_alive()
        log.info("Logged out")
        self._notify()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def execute_command(self, line: str) -> CommandResult:
        """Run a command on the server and wait for its complete output.

        Authentication is not checked locally; the server decides which
        commands need a session.

        Raises:
            NotConnectedError: No connection.
            CommandRejected: The server reported a failure. The service
                context is unchanged.
            TransportError: The request failed on the wire.
        """
        channel = await self._live_channel()
        token = self._token
        response = await self._call(
            channel,
            "executeCommand",
            CommandRequest(
                session_token=token,
                command_line=line,
                last_context=self._service_context,
            ),
            CommandResponse,
            self.config.timeouts.command,
        )
        if response.status_info is not None:
            await self._apply_server_status(token, response.status_info)
        if not response.success:
            raise CommandRejected(response.error_message)

        if response.new_context and response.new_context != self._service_context:
            log.debug("Service context: %s", response.new_context)
            self._service_context = response.new_context
        snapshot = self.snapshot()
        self.observer.on_status_changed(snapshot)
        return CommandResult(
            output=response.output,
            status_message=response.status_message,
            service_context=self._service_context,
            status=snapshot,
        )

    async def execute_streaming_command(self, line: str) -> int:
        """Run a long-running command, delivering its output as it arrives.

        Text goes to ``observer.on_output``, errors and the completion notice
        as "Error: ..." and "Completed: ..." lines, progress updates to
        ``observer.on_progress``. Returns the number of events received.

        Raises:
            NotConnectedError: No connection.
            TransportError: The stream broke or timed out; nothing further
                is delivered.
        """
        channel = await self._live_channel()
        request = CommandRequest(
            session_token=self._token,
            command_line=line,
            last_context=self._service_context,
        )
        timeout = self.config.timeouts.streaming
        log.debug("executeStreamingCommand %r", line)
        count = 0
        try:
            async with contextlib.aclosing(
                channel.stream(
                    "executeStreamingCommand",
                    request.model_dump(by_alias=True),
                    timeout=timeout,
                )
            ) as events:
                async for event in events:
                    try:
                        output = CommandOutput.model_validate(event)
                    except ValidationError as e:
                        raise ProtocolError(f"invalid command output: {e}") from e
                    count += 1
                    self._deliver(output)
        except TransportError as e:
            log.warning("Streaming command failed after %d event(s): %s", count, e)
            await self._check_channel(channel)
            raise
        log.debug("Streaming command completed with %d event(s)", count)
        return count

    def _deliver(self, output: CommandOutput) -> None:
        match output.type:
            case OutputType.TEXT:
                self.observer.on_output(output.content)
            case OutputType.STATUS_UPDATE:
                self.observer.on_progress(output.content, output.progress_percent)
            case OutputType.ERROR:
                self.observer.on_output(f"Error: {output.content}")
            case OutputType.COMPLETION:
                self.observer.on_output(f"Completed: {output.content}")

    async def auto_complete(self, partial_input: str, cursor_position: int | None = None) -> Completion:
        """Ask the server for completions. Any failure yields no suggestions."""
        channel = self._channel
        if channel is None or channel.closed:
            return Completion()
        if cursor_position is None:
            cursor_position = len(partial_input)
        try:
            response = await self._call(
                channel,
                "autoComplete",
                AutoCompleteRequest(
                    session_token=self._token,
                    partial_input=partial_input,
                    current_context=self._service_context,
                    cursor_position=cursor_position,
                ),
                AutoCompleteResponse,
                self.config.timeouts.auto_complete,
            )
        except TransportError:
            return Completion()
        suggestions = response.suggestions
        return Completion(suggestions, response.common_prefix or common_prefix(suggestions))

    # ------------------------------------------------------------------
    # Catalogue and server-side aliases
    # ------------------------------------------------------------------

    async def get_available_services(self) -> list[ServiceInfo]:
        channel = await self._live_channel(authenticated=True)
        response = await self._call(
            channel,
            "getAvailableServices",
            ServicesRequest(session_token=self._token),
            ServicesResponse,
            self.config.timeouts.connect,
        )
        return response.services

    async def get_service_commands(self, service: str) -> list[CommandInfo]:
        channel = await self._live_channel(authenticated=True)
        response = await self._call(
            channel,
            "getServiceCommands",
            ServiceCommandsRequest(session_token=self._token, service_name=service),
            ServiceCommandsResponse,
            self.config.timeouts.connect,
        )
        return response.commands

    async def get_command_help(
        self, service: str, action: str = "", subaction: str = ""
    ) -> CommandHelpResponse:
        channel = await self._live_channel(authenticated=True)
        return await self._call(
            channel,
            "getCommandHelp",
            CommandHelpRequest(
                session_token=self._token, service=service, action=action, subaction=subaction
            ),
            CommandHelpResponse,
            self.config.timeouts.connect,
        )

    async def get_aliases(self) -> list[AliasInfo]:
        channel = await self._live_channel(authenticated=True)
        response = await self._call(
            channel,
            "getAliases",
            GetAliasesRequest(session_token=self._token),
            GetAliasesResponse,
            self.config.timeouts.connect,
        )
        return response.aliases

    async def create_alias(self, alias: str, command: str) -> None:
        channel = await self._live_channel(authenticated=True)
        response = await self._call(
            channel,
            "createAlias",
            CreateAliasRequest(session_token=self._token, alias=alias, expanded_command=command),
            CreateAliasResponse,
            self.config.timeouts.connect,
        )
        if not response.success:
            raise AliasRejected(response.error_message)

    async def delete_alias(self, alias: str) -> None:
        channel = await self._live_channel(authenticated=True)
        response = await self._call(
            channel,
            "deleteAlias",
            DeleteAliasRequest(session_token=self._token, alias=alias),
            DeleteAliasResponse,
            self.config.timeouts.connect,
        )
        if not response.success:
            raise AliasRejected(response.error_message)

    # ------------------------------------------------------------------
    # Keep-alive
    # ------------------------------------------------------------------

    def start_keep_alive(self, interval: float | None = None) -> asyncio.Task[None] | None:
        """Start pinging the server for the current session.

        The task is bound to the token that is current now. It stops for good
        when the server reports the session invalid, or when that token is no
        longer the session's (logout, re-login, close). Returns None when the
        interval is not positive.

        Raises:
            NotAuthenticatedError: Not logged in.
        """
        self._require_authenticated()
        if interval is None:
            interval = self.config.session.keep_alive_interval
        if interval <= 0:
            return None
        if self._keep_alive_task is not None:
            self._keep_alive_task.cancel()
        self._keep_alive_task = asyncio.create_task(
            self._keep_alive_loop(self._token, interval), name="nexuflex-keep-alive"
        )
        return self._keep_alive_task

    async def stop_keep_alive(self) -> None:
        task, self._keep_alive_task = self._keep_alive_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _keep_alive_loop(self, token: str, interval: float) -> None:
        log.debug("Keep-alive started (every %gs)", interval)
        while True:
            await asyncio.sleep(interval)
            if not await self.keep_alive_once(token):
                break
        log.debug("Keep-alive stopped")

    async def keep_alive_once(self, token: str) -> bool:
        """Send one keep-alive ping for ``token``. Returns False once the loop should stop.

        A failed ping is logged and the loop waits for the next tick, unless
        the channel itself has shut down, which drops the connection.
        """
        async with self._lock:
            channel = self._channel
            if channel is None or self._token != token:
                return False
        if channel.closed:
            await self._check_channel(channel)
            return False

        try:
            response = await self._call(
                channel,
                "keepAlive",
                KeepAliveRequest(session_token=token),
                KeepAliveResponse,
                self.config.timeouts.keep_alive,
            )
        except TransportError:
            return not channel.closed

        if not response.session_valid:
            async with self._lock:
                expired = self._token == token
                if expired:
                    self._token = ""
                    self._session_state = SessionState.SESSION_EXPIRED
                    self._remaining_minutes = None
            if expired:
                log.warning("Session expired")
                self._notify()
            return False

        remaining = response.remaining_minutes
        if 0 < remaining <= self.config.session.expiry_warning_minutes:
            async with self._lock:
                current = self._token == token
                if current:
                    self._remaining_minutes = remaining
            if current:
                log.info("Session expires in %d minute(s)", remaining)
                self._notify()
        return True

    async def _apply_server_status(self, token: str, status: StatusInfo) -> None:
        """Adopt session status the server attached to a command response."""
        changed = False
        async with self._lock:
            if status.session_status == SessionStatus.SESSION_EXPIRED and token and self._token == token:
                self._token = ""
                self._session_state = SessionState.SESSION_EXPIRED
                self._remaining_minutes = None
                changed = True
            elif status.session_status == SessionStatus.LOGIN_REQUIRED and not self._token:
                changed = self._session_state != SessionState.LOGIN_REQUIRED
                self._session_state = SessionState.LOGIN_REQUIRED
        if changed:
            log.info("Server reports session state %s", status.session_status.value)
            if self._session_state == SessionState.SESSION_EXPIRED:
                await self.stop_keep_alive()
            self._notify()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_channel(self) -> Channel:
        if not self.is_connected:
            raise NotConnectedError()
        return self._channel

    def _require_authenticated(self) -> Channel:
        channel = self._require_channel()
        if self._session_state != SessionState.AUTHENTICATED or not self._token:
            raise NotAuthenticatedError()
        return channel

    async def _live_channel(self, authenticated: bool = False) -> Channel:
        """The current channel, after dropping the connection if it has shut down."""
        if self._channel is not None:
            await self._check_channel(self._channel)
        return self._require_authenticated() if authenticated else self._require_channel()

    async def _check_channel(self, channel: Channel) -> None:
        if channel is self._channel and channel.closed:
            log.warning("Connection to the server was lost")
            await self._drop_connection()

    async def _call(
        self,
        channel: Channel,
        method: str,
        request: BaseModel,
        response_type: type[ResponseT],
        timeout: float,
    ) -> ResponseT:
        log.debug("-> %s", method)
        try:
            result = await channel.call(method, request.model_dump(by_alias=True), timeout=timeout)
        except TransportError as e:
            log.warning("%s failed: %s", method, e)
            await self._check_channel(channel)
            raise
        try:
            return response_type.model_validate(result)
        except ValidationError as e:
            log.warning("%s returned an invalid response: %s", method, e)
            raise ProtocolError(f"invalid {method} response: {e}") from e
