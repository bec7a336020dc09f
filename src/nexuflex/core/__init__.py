"""Client core: session, history, aliases, completion and discovery."""

from nexuflex.core.aliases import RESERVED_KEYWORDS, AliasTable, is_reserved_keyword
from nexuflex.core.completion import (
    LOCAL_COMMANDS,
    Completion,
    CompletionEngine,
    common_prefix,
    format_suggestions,
    group_suggestions,
)
from nexuflex.core.discovery import (
    DiscoveryBackend,
    MulticastDiscovery,
    StaticDiscovery,
    discovery_from_config,
)
from nexuflex.core.history import HistoryStore
from nexuflex.core.session import (
    ClientSession,
    CommandResult,
    ConnectionState,
    ServerIdentity,
    SessionObserver,
    SessionState,
    StatusSnapshot,
)

__all__ = [
    "LOCAL_COMMANDS",
    "RESERVED_KEYWORDS",
    "AliasTable",
    "ClientSession",
    "CommandResult",
    "Completion",
    "CompletionEngine",
    "ConnectionState",
    "DiscoveryBackend",
    "HistoryStore",
    "MulticastDiscovery",
    "ServerIdentity",
    "SessionObserver",
    "SessionState",
    "StaticDiscovery",
    "StatusSnapshot",
    "common_prefix",
    "discovery_from_config",
    "format_suggestions",
    "group_suggestions",
    "is_reserved_keyword",
]
