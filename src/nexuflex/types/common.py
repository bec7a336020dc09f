"""Shared payload types of the nexuflex service contract."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NexuflexModel(BaseModel):
    """Base model for wire types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True)


class ServerInfo(NexuflexModel):
    """A server as announced by discovery or recorded after connect."""

    hostname: str = ""
    address: str
    port: int
    short_name: str = Field(default="", alias="shortName")
    description: str = ""
    tls_enabled: bool = Field(default=False, alias="tlsEnabled")
    version: str = ""

    @property
    def display_name(self) -> str:
        return self.short_name or self.hostname or self.address


class UserInfo(NexuflexModel):
    """Account details returned on login."""

    username: str = ""
    display_name: str = Field(default="", alias="displayName")
    roles: list[str] = Field(default_factory=list)
    session_timeout_minutes: int = Field(default=0, alias="sessionTimeoutMinutes")
    absolute_timeout_minutes: int = Field(default=0, alias="absoluteTimeoutMinutes")
    last_login_time: str = Field(default="", alias="lastLoginTime")


class ConnectionStatus(str, Enum):
    """Connection status as reported by the server."""

    OFFLINE = "OFFLINE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    CONNECTION_ERROR = "CONNECTION_ERROR"


class SessionStatus(str, Enum):
    """Session status as reported by the server."""

    NOT_LOGGED_IN = "NOT_LOGGED_IN"
    AUTHENTICATED = "AUTHENTICATED"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    SESSION_EXPIRING = "SESSION_EXPIRING"
    SESSION_EXPIRED = "SESSION_EXPIRED"


class StatusInfo(NexuflexModel):
    """Status block attached to command responses."""

    connection_status: ConnectionStatus = Field(
        default=ConnectionStatus.CONNECTED, alias="connectionStatus"
    )
    session_status: SessionStatus = Field(
        default=SessionStatus.NOT_LOGGED_IN, alias="sessionStatus"
    )
    current_service: str = Field(default="", alias="currentService")
    session_remaining_minutes: int = Field(default=0, alias="sessionRemainingMinutes")
    server_name: str = Field(default="", alias="serverName")
    username: str = ""


class ServiceInfo(NexuflexModel):
    """A business service offered by the server."""

    service_name: str = Field(alias="serviceName")
    description: str = ""
    version: str = ""
    is_core_service: bool = Field(default=False, alias="isCoreService")


class ParameterInfo(NexuflexModel):
    """A parameter of a service command."""

    name: str
    description: str = ""
    required: bool = False
    data_type: str = Field(default="", alias="dataType")
    default_value: str = Field(default="", alias="defaultValue")


class CommandInfo(NexuflexModel):
    """A command (action and optional subaction) of a service."""

    action: str
    subaction: str = ""
    description: str = ""
    usage_example: str = Field(default="", alias="usageExample")
    parameters: list[ParameterInfo] = Field(default_factory=list)

    @property
    def name(self) -> str:
        if self.subaction:
            return f"{self.action}.{self.subaction}"
        return self.action


class AliasInfo(NexuflexModel):
    """A server-side alias."""

    alias: str
    expanded_command: str = Field(alias="expandedCommand")
    is_global: bool = Field(default=False, alias="isGlobal")


class OutputType(str, Enum):
    """Kind of a streamed output event."""

    TEXT = "TEXT"
    STATUS_UPDATE = "STATUS_UPDATE"
    ERROR = "ERROR"
    COMPLETION = "COMPLETION"


class CommandOutput(NexuflexModel):
    """One event of a streaming command."""

    type: OutputType = OutputType.TEXT
    content: str = ""
    progress_percent: int = Field(default=0, alias="progressPercent")
