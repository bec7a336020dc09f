"""Configuration management for the nexuflex client.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/nexuflex/ or %PROGRAMDATA%)
- User-level config (~/.config/nexuflex/ or %APPDATA%)
- Project-level config (./.nexuflex/)
- An explicit file passed with --config
- Environment variable overrides (highest priority)

Example usage:
    from nexuflex.config import load_config

    config = load_config()
    print(config.server.port)
    print(config.timeouts.command)
"""

from nexuflex.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from nexuflex.config.paths import (
    default_aliases_path,
    default_history_path,
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from nexuflex.config.schema import (
    AliasConfig,
    Config,
    HistoryConfig,
    KnownServerConfig,
    LoggingConfig,
    ServerConfig,
    SessionConfig,
    TimeoutConfig,
    UIConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "AliasConfig",
    "HistoryConfig",
    "KnownServerConfig",
    "LoggingConfig",
    "ServerConfig",
    "SessionConfig",
    "TimeoutConfig",
    "UIConfig",
    # Path utilities
    "default_aliases_path",
    "default_history_path",
    "get_config_paths",
    "get_project_config_path",
    "get_system_config_path",
    "get_user_config_path",
]
