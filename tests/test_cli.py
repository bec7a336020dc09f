"""Tests for command-line parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from nexuflex import __version__
from nexuflex.cli import apply_overrides, create_parser
from nexuflex.config import Config


class TestParser:
    """Tests for create_parser and apply_overrides."""

    def test_defaults_leave_config_alone(self) -> None:
        config = apply_overrides(Config(), create_parser().parse_args([]))

        assert config == Config()

    def test_server_flags(self) -> None:
        parsed = create_parser().parse_args(
            ["--server", "app01", "--port", "6000", "--tls", "--config", "nx.yaml"]
        )

        config = apply_overrides(Config(), parsed)

        assert parsed.config == Path("nx.yaml")
        assert config.server.address == "app01"
        assert config.server.port == 6000
        assert config.server.use_tls is True

    def test_discover_flags(self) -> None:
        parsed = create_parser().parse_args(["--discover", "--discover-timeout", "2.5"])

        config = apply_overrides(Config(), parsed)

        assert config.server.auto_discover is True
        assert config.server.discover_timeout == 2.5

    @pytest.mark.parametrize(("flags", "verbose"), [(["-v"], 2), (["-vv"], 3), (["-vvvvv"], 4)])
    def test_verbosity(self, flags: list[str], verbose: int) -> None:
        config = apply_overrides(Config(), create_parser().parse_args(flags))
        assert config.logging.verbose == verbose

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out
