"""Wire types of the nexuflex service contract."""

from __future__ import annotations

from pydantic import BaseModel

from nexuflex.types.common import (
    AliasInfo,
    CommandInfo,
    CommandOutput,
    ConnectionStatus,
    NexuflexModel,
    OutputType,
    ParameterInfo,
    ServerInfo,
    ServiceInfo,
    SessionStatus,
    StatusInfo,
    UserInfo,
)
from nexuflex.types.requests import (
    AutoCompleteRequest,
    CommandHelpRequest,
    CommandRequest,
    ConnectRequest,
    CreateAliasRequest,
    DeleteAliasRequest,
    GetAliasesRequest,
    KeepAliveRequest,
    LoginRequest,
    LogoutRequest,
    ServiceCommandsRequest,
    ServicesRequest,
)
from nexuflex.types.responses import (
    AutoCompleteResponse,
    CommandHelpResponse,
    CommandResponse,
    ConnectResponse,
    CreateAliasResponse,
    DeleteAliasResponse,
    GetAliasesResponse,
    KeepAliveResponse,
    LoginResponse,
    LogoutResponse,
    ResultResponse,
    ServiceCommandsResponse,
    ServicesResponse,
)

# Method name to request/response type mapping
SERVICE_METHODS: dict[str, tuple[type[BaseModel], type[BaseModel]]] = {
    "connect": (ConnectRequest, ConnectResponse),
    "login": (LoginRequest, LoginResponse),
    "logout": (LogoutRequest, LogoutResponse),
    "keepAlive": (KeepAliveRequest, KeepAliveResponse),
    "executeCommand": (CommandRequest, CommandResponse),
    "getAvailableServices": (ServicesRequest, ServicesResponse),
    "getServiceCommands": (ServiceCommandsRequest, ServiceCommandsResponse),
    "getCommandHelp": (CommandHelpRequest, CommandHelpResponse),
    "autoComplete": (AutoCompleteRequest, AutoCompleteResponse),
    "getAliases": (GetAliasesRequest, GetAliasesResponse),
    "createAlias": (CreateAliasRequest, CreateAliasResponse),
    "deleteAlias": (DeleteAliasRequest, DeleteAliasResponse),
}

# Streaming methods: request type to the per-event notification type
STREAMING_METHODS: dict[str, tuple[type[BaseModel], type[BaseModel]]] = {
    "executeStreamingCommand": (CommandRequest, CommandOutput),
}

__all__ = [
    "SERVICE_METHODS",
    "STREAMING_METHODS",
    # Common
    "AliasInfo",
    "CommandInfo",
    "CommandOutput",
    "ConnectionStatus",
    "NexuflexModel",
    "OutputType",
    "ParameterInfo",
    "ServerInfo",
    "ServiceInfo",
    "SessionStatus",
    "StatusInfo",
    "UserInfo",
    # Requests
    "AutoCompleteRequest",
    "CommandHelpRequest",
    "CommandRequest",
    "ConnectRequest",
    "CreateAliasRequest",
    "DeleteAliasRequest",
    "GetAliasesRequest",
    "KeepAliveRequest",
    "LoginRequest",
    "LogoutRequest",
    "ServiceCommandsRequest",
    "ServicesRequest",
    # Responses
    "AutoCompleteResponse",
    "CommandHelpResponse",
    "CommandResponse",
    "ConnectResponse",
    "CreateAliasResponse",
    "DeleteAliasResponse",
    "GetAliasesResponse",
    "KeepAliveResponse",
    "LoginResponse",
    "LogoutResponse",
    "ResultResponse",
    "ServiceCommandsResponse",
    "ServicesResponse",
]
