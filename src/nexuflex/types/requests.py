"""Request payloads, one per service method."""

from __future__ import annotations

from pydantic import Field

from nexuflex.types.common import NexuflexModel


class ConnectRequest(NexuflexModel):
    address: str
    port: int
    use_tls: bool = Field(default=False, alias="useTls")


class LoginRequest(NexuflexModel):
    username: str
    password: str


class LogoutRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")


class KeepAliveRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")


class CommandRequest(NexuflexModel):
    """Unary and streaming command execution."""

    session_token: str = Field(default="", alias="sessionToken")
    command_line: str = Field(alias="commandLine")
    last_context: str = Field(default="", alias="lastContext")


class ServicesRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")


class ServiceCommandsRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")
    service_name: str = Field(alias="serviceName")


class CommandHelpRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")
    service: str
    action: str = ""
    subaction: str = ""


class AutoCompleteRequest(NexuflexModel):
    session_token: str = Field(default="", alias="sessionToken")
    partial_input: str = Field(alias="partialInput")
    current_context: str = Field(default="", alias="currentContext")
    cursor_position: int = Field(default=0, alias="cursorPosition")


class GetAliasesRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")


class CreateAliasRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")
    alias: str
    expanded_command: str = Field(alias="expandedCommand")


class DeleteAliasRequest(NexuflexModel):
    session_token: str = Field(alias="sessionToken")
    alias: str
