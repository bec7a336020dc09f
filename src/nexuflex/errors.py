"""Error hierarchy for the nexuflex client.

Four kinds of failure reach callers, all derived from NexuflexError:

- TransportError: the channel could not be opened, timed out, broke, or
  carried something that is not a valid exchange.
- RemoteRejection: a well-formed response whose success flag was false.
- PreconditionError: the operation needs a connection or a login that
  the client does not have. Raised before any request is sent.
- AliasError: local alias table validation. Never touches the network.
"""

from __future__ import annotations


class NexuflexError(Exception):
    """Base class for every error raised by the client core."""


# === Transport ===


class TransportError(NexuflexError):
    """Channel establishment, network or timeout failure."""


class ConnectionFailed(TransportError):
    """The transport to the server could not be established."""


class RequestTimeout(TransportError):
    """A request did not complete within its timeout."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"{method} timed out after {timeout:g}s")
        self.method = method
        self.timeout = timeout


class ProtocolError(TransportError):
    """The peer sent a JSON-RPC error or a payload that does not validate."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


# === Application rejections ===


class RemoteRejection(NexuflexError):
    """The server answered, but refused the request."""

    action = "request"

    def __init__(self, reason: str) -> None:
        self.reason = reason or "no reason given"
        super().__init__(f"{self.action} failed: {self.reason}")


class ConnectRejected(RemoteRejection):
    action = "connect"


class LoginRejected(RemoteRejection):
    action = "login"


class LogoutRejected(RemoteRejection):
    action = "logout"


class CommandRejected(RemoteRejection):
    action = "command"


class AliasRejected(RemoteRejection):
    action = "alias request"


# === Preconditions ===


class PreconditionError(NexuflexError):
    """Operation invoked in a state that does not allow it."""


class NotConnectedError(PreconditionError):
    def __init__(self) -> None:
        super().__init__("not connected to server")


class NotAuthenticatedError(PreconditionError):
    def __init__(self) -> None:
        super().__init__("not logged in")


# === Local alias validation ===


class AliasError(NexuflexError):
    """Alias table validation failure."""


class AliasCapacityError(AliasError):
    def __init__(self, max_count: int) -> None:
        super().__init__(f"maximum number of aliases ({max_count}) reached")
        self.max_count = max_count


class InvalidAliasName(AliasError):
    def __init__(self, name: str) -> None:
        super().__init__(f"invalid alias name {name!r}: must be non-empty without spaces or periods")
        self.name = name


class ReservedAliasName(AliasError):
    def __init__(self, name: str) -> None:
        super().__init__(f"'{name}' is a reserved keyword")
        self.name = name


class DuplicateAlias(AliasError):
    def __init__(self, name: str) -> None:
        super().__init__(f"an alias with the name '{name}' already exists")
        self.name = name


class AliasNotFound(AliasError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no alias with the name '{name}' found")
        self.name = name
