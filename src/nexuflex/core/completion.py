"""Command completion blending local commands with server suggestions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from nexuflex.logging import get_logger

log = get_logger("completion")

SERVICE_SEPARATOR = "."
COLUMN_COUNT = 4
COLUMN_WIDTH = 20

# Commands handled by the interactive shell itself
LOCAL_COMMANDS = (
    "help",
    "?",
    "exit",
    "quit",
    "clear",
    "cls",
    "connect",
    "disconnect",
    "discover",
    "login",
    "logout",
    "alias",
    "unalias",
    "history",
    "use",
    "status",
    "services",
    "commands",
    "describe",
    "stream",
)


@dataclass
class Completion:
    """Suggestions for one input and their longest shared prefix."""

    suggestions: list[str] = field(default_factory=list)
    common_prefix: str = ""

    def __bool__(self) -> bool:
        return bool(self.suggestions)


# Asks the server for suggestions; returns an empty Completion on failure
RemoteCompleter = Callable[[str], Awaitable[Completion]]


def common_prefix(items: Iterable[str]) -> str:
    """Longest string every item starts with ("" for no items)."""
    items = list(items)
    if not items:
        return ""
    prefix = items[0]
    for item in items[1:]:
        n = 0
        limit = min(len(prefix), len(item))
        while n < limit and prefix[n] == item[n]:
            n += 1
        prefix = prefix[:n]
        if not prefix:
            break
    return prefix


def group_suggestions(suggestions: Iterable[str]) -> dict[str, list[str]]:
    """Group by the service segment before the first ".".

    Suggestions without a separator land in the "" group. Groups appear in
    order of first occurrence.
    """
    groups: dict[str, list[str]] = {}
    for item in suggestions:
        service, sep, _ = item.partition(SERVICE_SEPARATOR)
        groups.setdefault(service if sep else "", []).append(item)
    return groups


def format_columns(items: list[str], columns: int = COLUMN_COUNT, width: int = COLUMN_WIDTH) -> str:
    """Lay items out left-aligned in fixed-width columns.

    Items longer than the column are cut and marked with "...".
    """
    rows = []
    for start in range(0, len(items), columns):
        cells = []
        for item in items[start : start + columns]:
            cell = "%-*s" % (width, item)
            if len(cell) > width:
                cell = cell[: width - 3] + "..."
            cells.append(cell)
        rows.append("".join(cells))
    return "\n".join(rows)


def format_suggestions(suggestions: list[str]) -> list[tuple[str, str]]:
    """Render suggestions for display as ``(group, block)`` pairs.

    ``group`` is the service name ("" for ungrouped items) and ``block`` its
    items in columns. Returns an empty list when there is nothing to show.
    """
    return [
        (group, format_columns(items))
        for group, items in group_suggestions(suggestions).items()
    ]


class CompletionEngine:
    """Completes partial input from local commands, aliases and the server.

    Input without a service separator is first matched against the local
    vocabulary; a local hit never reaches the server. Everything else is
    looked up in a per-input cache and, on a miss, asked of the server.
    Only non-empty server answers are cached, and the cache is only cleared
    by ``invalidate_cache``.
    """

    def __init__(
        self,
        remote: RemoteCompleter | None = None,
        local_commands: Iterable[str] = LOCAL_COMMANDS,
    ) -> None:
        self._remote = remote
        self._local: set[str] = set(local_commands)
        self._cache: dict[str, list[str]] = {}

    @property
    def local_commands(self) -> list[str]:
        return sorted(self._local)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def set_remote(self, remote: RemoteCompleter | None) -> None:
        self._remote = remote
        self.invalidate_cache()

    def add_local_command(self, name: str) -> None:
        self._local.add(name)
        self.invalidate_cache()

    def remove_local_command(self, name: str) -> None:
        self._local.discard(name)
        self.invalidate_cache()

    def invalidate_cache(self) -> None:
        self._cache.clear()

    @staticmethod
    def show_suggestions(suggestions: list[str]) -> str:
        """Plain-text listing of suggestions grouped by service ("" if none)."""
        if not suggestions:
            return ""
        lines = ["Possible completions:"]
        for group, block in format_suggestions(suggestions):
            if group:
                lines.append(f"{group}:")
            lines.append(block)
        return "\n".join(lines)

    async def complete(self, text: str) -> Completion:
        text = text.strip()

        if not text:
            suggestions = self.local_commands
            if self._remote is not None:
                remote = await self._remote("")
                seen = set(suggestions)
                for item in remote.suggestions:
                    if item not in seen:
                        seen.add(item)
                        suggestions.append(item)
            return Completion(suggestions, "")

        if SERVICE_SEPARATOR not in text:
            local = sorted(cmd for cmd in self._local if cmd.startswith(text))
            if local:
                return Completion(local, common_prefix(local))

        if self._remote is None:
            return Completion()

        cached = self._cache.get(text)
        if cached is not None:
            log.debug("Completion cache hit for %r", text)
            return Completion(list(cached), common_prefix(cached))

        result = await self._remote(text)
        if not result:
            return Completion()
        self._cache[text] = list(result.suggestions)
        return Completion(list(result.suggestions), result.common_prefix or common_prefix(result.suggestions))
