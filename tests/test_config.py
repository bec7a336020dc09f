"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from nexuflex.config import (
    Config,
    get_config,
    load_config,
    reset_config,
)
from nexuflex.config.merge import deep_merge, merge_configs
from nexuflex.config.paths import (
    default_aliases_path,
    default_history_path,
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_simple_override(self) -> None:
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        assert deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Nested sections merge key by key."""
        base = {"server": {"address": "app01", "port": 50051}}
        override = {"server": {"port": 6000}}
        result = deep_merge(base, override)
        assert result["server"] == {"address": "app01", "port": 6000}

    def test_none_does_not_override(self) -> None:
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_list_replaced_not_merged(self) -> None:
        base = {"known_servers": [{"address": "a"}, {"address": "b"}]}
        override = {"known_servers": [{"address": "c"}]}
        assert deep_merge(base, override)["known_servers"] == [{"address": "c"}]

    def test_inputs_untouched(self) -> None:
        base = {"server": {"port": 1}}
        deep_merge(base, {"server": {"port": 2}})
        assert base == {"server": {"port": 1}}

    def test_merge_configs_multiple(self) -> None:
        assert merge_configs({"a": 1, "b": 2}, {"b": 3}, {}, {"c": 4}) == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")

        path = get_system_config_path()
        assert path is not None
        assert "ProgramData" in str(path)
        assert "nexuflex" in str(path)
        assert "config.yaml" in str(path)

    def test_windows_user_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", "C:\\Users\\Test\\AppData\\Roaming")

        path = get_user_config_path()
        assert path is not None
        assert "AppData" in str(path)
        assert "nexuflex" in str(path)

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/nexuflex/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """XDG_CONFIG_HOME wins over the home directory."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")

        assert get_user_config_path() == Path("/home/test/.config-custom/nexuflex/config.yaml")

    def test_project_config_path(self) -> None:
        path = get_project_config_path("/home/user/myproject")
        assert path == Path("/home/user/myproject/.nexuflex/config.yaml")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")

        paths = get_config_paths(project_root="/project")

        assert len(paths) == 3
        assert "etc" in paths[0].parts
        assert "xdg" in paths[1].parts
        assert "project" in paths[2].parts

    def test_state_files_live_in_user_dir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config")

        assert default_history_path() == Path("/home/test/.config/nexuflex/history.txt")
        assert default_aliases_path() == Path("/home/test/.config/nexuflex/local_aliases.txt")


class TestConfigLoading:
    """Test configuration loading."""

    @pytest.fixture
    def temp_config_dir(self, tmp_path: Path) -> Path:
        config_dir = tmp_path / ".nexuflex"
        config_dir.mkdir()
        return config_dir

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(project_root=str(tmp_path))

        assert isinstance(config, Config)
        assert config.server.port == 50051
        assert config.timeouts.command == 30.0
        assert config.timeouts.auto_complete == 1.0
        assert config.session.keep_alive_interval == 60.0
        assert config.history.max_entries == 100
        assert config.aliases.max_count == 50

    def test_load_yaml_config(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text(
            """
server:
  address: app01.example.com
  use_tls: true
  known_servers:
    - address: localhost
      name: Local Dev Server
    - name: missing address is skipped
timeouts:
  command: 90
history:
  max_entries: 500
""",
            encoding="utf-8",
        )

        config = load_config(project_root=str(temp_config_dir.parent))

        assert config.server.address == "app01.example.com"
        assert config.server.use_tls is True
        assert config.server.port == 50051
        assert len(config.server.known_servers) == 1
        assert config.server.known_servers[0].name == "Local Dev Server"
        assert config.timeouts.command == 90.0
        assert config.timeouts.connect == 5.0
        assert config.history.max_entries == 500

    def test_explicit_file_beats_project(self, temp_config_dir: Path, tmp_path: Path) -> None:
        (temp_config_dir / "config.yaml").write_text("server:\n  address: project\n  port: 1\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("server:\n  address: explicit\n")

        config = load_config(config_path=explicit, project_root=str(temp_config_dir.parent))

        assert config.server.address == "explicit"
        assert config.server.port == 1

    def test_env_overrides_config(self, temp_config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (temp_config_dir / "config.yaml").write_text("server:\n  address: from-file\n  port: 1\n")
        monkeypatch.setenv("NX_SERVER", "from-env")
        monkeypatch.setenv("NX_PORT", "7000")
        monkeypatch.setenv("NX_LOG", "/tmp/nexuflex.log")

        config = load_config(project_root=str(temp_config_dir.parent))

        assert config.server.address == "from-env"
        assert config.server.port == 7000
        assert config.logging.file == "/tmp/nexuflex.log"

    def test_non_numeric_port_env_ignored(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("NX_PORT", "abc")
        config = load_config(project_root=str(tmp_path))
        assert config.server.port == 50051

    def test_invalid_yaml_uses_defaults(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text("invalid: yaml: :")

        config = load_config(project_root=str(temp_config_dir.parent))

        assert config.server.address == ""

    def test_extra_fields_preserved(self, temp_config_dir: Path) -> None:
        (temp_config_dir / "config.yaml").write_text(
            """
custom_field: custom_value
nested:
  field: value
"""
        )
        config = load_config(project_root=str(temp_config_dir.parent))
        assert config.extra["custom_field"] == "custom_value"
        assert config.extra["nested"]["field"] == "value"


class TestConfigCaching:
    """Test config caching behavior."""

    def test_get_config_caches(self) -> None:
        assert get_config() is get_config()

    def test_reset_clears_cache(self) -> None:
        config1 = get_config()
        reset_config()
        assert get_config() is not config1

    def test_project_config_not_cached(self, tmp_path: Path) -> None:
        project_config = load_config(project_root=str(tmp_path))
        assert project_config is not get_config()
