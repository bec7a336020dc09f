"""Response payloads, one per service method.

Every response that can fail on the application level carries ``success``
and ``errorMessage``. A false ``success`` is a rejection, not a transport
problem.
"""

from __future__ import annotations

from pydantic import Field

from nexuflex.types.common import (
    AliasInfo,
    CommandInfo,
    NexuflexModel,
    ServiceInfo,
    StatusInfo,
    UserInfo,
)


class ResultResponse(NexuflexModel):
    """Common shape of responses with a success flag."""

    success: bool = False
    error_message: str = Field(default="", alias="errorMessage")


class ConnectResponse(ResultResponse):
    server_name: str = Field(default="", alias="serverName")
    version: str = ""
    supported_features: list[str] = Field(default_factory=list, alias="supportedFeatures")


class LoginResponse(ResultResponse):
    session_token: str = Field(default="", alias="sessionToken")
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")


class LogoutResponse(ResultResponse):
    pass


class KeepAliveResponse(NexuflexModel):
    session_valid: bool = Field(alias="sessionValid")
    remaining_minutes: int = Field(default=0, alias="remainingMinutes")


class CommandResponse(ResultResponse):
    output: str = ""
    status_message: str = Field(default="", alias="statusMessage")
    status_info: StatusInfo | None = Field(default=None, alias="statusInfo")
    new_context: str = Field(default="", alias="newContext")


class ServicesResponse(NexuflexModel):
    services: list[ServiceInfo] = Field(default_factory=list)


class ServiceCommandsResponse(NexuflexModel):
    commands: list[CommandInfo] = Field(default_factory=list)


class CommandHelpResponse(NexuflexModel):
    help_text: str = Field(default="", alias="helpText")
    command_info: CommandInfo | None = Field(default=None, alias="commandInfo")


class AutoCompleteResponse(NexuflexModel):
    suggestions: list[str] = Field(default_factory=list)
    common_prefix: str = Field(default="", alias="commonPrefix")


class GetAliasesResponse(NexuflexModel):
    aliases: list[AliasInfo] = Field(default_factory=list)


class CreateAliasResponse(ResultResponse):
    pass


class DeleteAliasResponse(ResultResponse):
    pass
