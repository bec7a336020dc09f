"""Interactive shell for nexuflex."""

from nexuflex.interactive.commands import CommandHandler
from nexuflex.interactive.repl import ConsoleObserver, InteractiveRepl

__all__ = [
    "CommandHandler",
    "ConsoleObserver",
    "InteractiveRepl",
]
