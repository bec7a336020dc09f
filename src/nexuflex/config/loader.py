"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from nexuflex.config.merge import merge_configs
from nexuflex.config.paths import get_config_paths
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

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("nexuflex.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"server", "timeouts", "session", "history", "aliases", "ui", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    NX_LOG sets the log file, NX_SERVER and NX_PORT the server to connect to.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("NX_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    server = os.environ.get("NX_SERVER")
    if server:
        overrides.setdefault("server", {})["address"] = server

    port = os.environ.get("NX_PORT")
    if port:
        try:
            overrides.setdefault("server", {})["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring non-numeric NX_PORT=%r", port)

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    server_data = _section(data, "server")
    defaults = ServerConfig()
    known_servers = [
        KnownServerConfig(
            address=s["address"],
            port=int(s.get("port", defaults.port)),
            name=s.get("name", ""),
            description=s.get("description", ""),
            tls=bool(s.get("tls", False)),
        )
        for s in server_data.get("known_servers", [])
        if isinstance(s, dict) and s.get("address")
    ]
    server = ServerConfig(
        address=server_data.get("address", defaults.address),
        port=int(server_data.get("port", defaults.port)),
        use_tls=bool(server_data.get("use_tls", defaults.use_tls)),
        discovery_token=server_data.get("discovery_token", defaults.discovery_token),
        auto_discover=bool(server_data.get("auto_discover", defaults.auto_discover)),
        discover_timeout=float(server_data.get("discover_timeout", defaults.discover_timeout)),
        multicast_address=server_data.get("multicast_address", defaults.multicast_address),
        known_servers=known_servers,
    )

    timeout_data = _section(data, "timeouts")
    t = TimeoutConfig()
    timeouts = TimeoutConfig(
        connect=float(timeout_data.get("connect", t.connect)),
        command=float(timeout_data.get("command", t.command)),
        auto_complete=float(timeout_data.get("auto_complete", t.auto_complete)),
        streaming=float(timeout_data.get("streaming", t.streaming)),
        keep_alive=float(timeout_data.get("keep_alive", t.keep_alive)),
    )

    session_data = _section(data, "session")
    s = SessionConfig()
    session = SessionConfig(
        keep_alive_interval=float(session_data.get("keep_alive_interval", s.keep_alive_interval)),
        expiry_warning_minutes=int(
            session_data.get("expiry_warning_minutes", s.expiry_warning_minutes)
        ),
    )

    history_data = _section(data, "history")
    h = HistoryConfig()
    history = HistoryConfig(
        max_entries=int(history_data.get("max_entries", h.max_entries)),
        save=bool(history_data.get("save", h.save)),
        save_on_shutdown=bool(history_data.get("save_on_shutdown", h.save_on_shutdown)),
        path=history_data.get("path"),
    )

    alias_data = _section(data, "aliases")
    a = AliasConfig()
    aliases = AliasConfig(
        enabled=bool(alias_data.get("enabled", a.enabled)),
        max_count=int(alias_data.get("max_count", a.max_count)),
        path=alias_data.get("path"),
    )

    ui_data = _section(data, "ui")
    u = UIConfig()
    ui = UIConfig(
        auto_complete=bool(ui_data.get("auto_complete", u.auto_complete)),
        header_text=ui_data.get("header_text", u.header_text),
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        server=server,
        timeouts=timeouts,
        session=session,
        history=history,
        aliases=aliases,
        ui=ui,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    config_path: Path | None = None,
    project_root: str | None = None,
    reload: bool = False,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file (--config)
    3. Project config (<project_root>/.nexuflex/config.yaml)
    4. User config (~/.config/nexuflex/ or %APPDATA%)
    5. System config (/etc/nexuflex/ or %PROGRAMDATA%)

    Args:
        config_path: Explicit config file; takes precedence over files found
            in the standard locations.
        project_root: Directory for project-level config.
        reload: Force reload even if cached.
    """
    global _cached_config

    is_global = config_path is None and project_root is None
    if _cached_config is not None and not reload and is_global:
        return _cached_config

    layers: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        data = load_yaml_file(path)
        if data:
            _log.debug("Loaded config from %s", path)
            layers.append(data)

    if config_path is not None:
        if not config_path.exists():
            _log.warning("Config file %s not found, using defaults", config_path)
        layers.append(load_yaml_file(config_path))

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    config = dict_to_config(merge_configs(*layers))

    if is_global:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None
