"""Configuration schema dataclasses for the nexuflex client.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_PORT = 50051


@dataclass
class KnownServerConfig:
    """A server listed in config for static discovery."""

    address: str
    port: int = DEFAULT_PORT
    name: str = ""
    description: str = ""
    tls: bool = False


@dataclass
class ServerConfig:
    """Server connection and discovery configuration.

    Example config.yaml:
        server:
          address: app01.example.com
          port: 50051
          use_tls: true
          auto_discover: false
          known_servers:
            - address: localhost
              name: Local Dev Server
    """

    address: str = ""
    port: int = DEFAULT_PORT
    use_tls: bool = False
    discovery_token: str = "NEXUFLEX_DISCOVERY"
    auto_discover: bool = False
    discover_timeout: float = 5.0
    multicast_address: str = "239.0.0.1:5000"
    known_servers: list[KnownServerConfig] = field(default_factory=list)


@dataclass
class TimeoutConfig:
    """Per-operation timeouts in seconds."""

    connect: float = 5.0  # connect, login, logout and catalogue requests
    command: float = 30.0
    auto_complete: float = 1.0
    streaming: float = 600.0
    keep_alive: float = 2.0


@dataclass
class SessionConfig:
    """Session maintenance configuration."""

    keep_alive_interval: float = 60.0  # Seconds between pings; 0 disables
    expiry_warning_minutes: int = 5  # Report remaining time at or below this


@dataclass
class HistoryConfig:
    """Command history configuration."""

    max_entries: int = 100
    save: bool = True
    save_on_shutdown: bool = True
    path: str | None = None  # Default: <user config dir>/history.txt


@dataclass
class AliasConfig:
    """Local alias configuration."""

    enabled: bool = True
    max_count: int = 50
    path: str | None = None  # Default: <user config dir>/local_aliases.txt


@dataclass
class UIConfig:
    """Interactive shell configuration."""

    auto_complete: bool = True
    header_text: str = "nexuflex Terminal"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    aliases: AliasConfig = field(default_factory=AliasConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Extension point for future config sections
    extra: dict[str, Any] = field(default_factory=dict)
