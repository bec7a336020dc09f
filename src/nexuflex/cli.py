"""Command-line interface for nexuflex."""

from __future__ import annotations

import argparse
import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from nexuflex import __version__
from nexuflex.config.schema import Config


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nexuflex",
        description="nexuflex Terminal - run commands on a nexuflex server",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (overrides the standard locations)",
    )
    parser.add_argument(
        "--server",
        help="Server address to connect to on startup",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Server port (default: 50051)",
    )
    parser.add_argument(
        "--tls",
        action="store_true",
        help="Use TLS for the connection",
    )
    parser.add_argument(
        "--discover",
        action="store_true",
        help="Discover servers on the network when no server is given",
    )
    parser.add_argument(
        "--discover-timeout",
        type=float,
        help="Seconds to wait for discovery replies",
    )
    return parser


def apply_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply command-line flags on top of the loaded configuration."""
    if parsed.server:
        config.server.address = parsed.server
    if parsed.port is not None:
        config.server.port = parsed.port
    if parsed.tls:
        config.server.use_tls = True
    if parsed.discover:
        config.server.auto_discover = True
    if parsed.discover_timeout is not None:
        config.server.discover_timeout = parsed.discover_timeout
    if parsed.verbose:
        # -v shows info, -vv verbose, -vvv everything
        config.logging.verbose = min(parsed.verbose + 1, 4)
    return config


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from nexuflex.config import load_config
    from nexuflex.logging import setup_logging

    config = load_config(config_path=parsed.config, project_root=os.getcwd())
    apply_overrides(config, parsed)
    setup_logging(config.logging)

    from nexuflex.interactive.repl import InteractiveRepl

    try:
        return asyncio.run(InteractiveRepl(config).run())
    except KeyboardInterrupt:
        return 130
