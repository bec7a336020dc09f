"""CLI entry point for nexuflex."""

import sys


def main() -> int:
    """Main entry point for the nexuflex CLI."""
    from nexuflex.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
