"""Local command aliases: short names expanded before a line is sent."""

from __future__ import annotations

import os
from pathlib import Path

from filelock import FileLock

from nexuflex.core.completion import LOCAL_COMMANDS
from nexuflex.errors import (
    AliasCapacityError,
    AliasError,
    AliasNotFound,
    DuplicateAlias,
    InvalidAliasName,
    ReservedAliasName,
)
from nexuflex.logging import get_logger

log = get_logger("aliases")

DEFAULT_MAX_COUNT = 50

# Words the local command interpreter claims for itself
RESERVED_KEYWORDS = frozenset(LOCAL_COMMANDS)


def is_reserved_keyword(name: str) -> bool:
    return name.lower() in RESERVED_KEYWORDS


class AliasTable:
    """Bounded alias table, persisted as ``name=command`` lines.

    Names are unique, contain no whitespace and no ``.``, and never shadow a
    reserved keyword. Entries keep insertion order, which is also the order
    in which the capacity bound is applied on load.
    """

    def __init__(self, max_count: int = DEFAULT_MAX_COUNT, path: Path | None = None) -> None:
        if max_count < 0:
            raise ValueError(f"max_count must not be negative, got {max_count}")
        self.max_count = max_count
        self.path = path
        self._aliases: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, name: object) -> bool:
        return name in self._aliases

    def add(self, name: str, command: str) -> None:
        """Insert an alias.

        Raises:
            AliasCapacityError: The table already holds ``max_count`` entries.
            InvalidAliasName: Empty name, or one containing whitespace or ``.``.
            ReservedAliasName: The name is a local interpreter keyword.
            DuplicateAlias: The name is already defined.
        """
        if len(self._aliases) >= self.max_count:
            raise AliasCapacityError(self.max_count)
        if not name or "." in name or any(ch.isspace() for ch in name):
            raise InvalidAliasName(name)
        if is_reserved_keyword(name):
            raise ReservedAliasName(name)
        if name in self._aliases:
            raise DuplicateAlias(name)
        self._aliases[name] = command

    def remove(self, name: str) -> None:
        """Delete an alias. Raises AliasNotFound if it is not defined."""
        if name not in self._aliases:
            raise AliasNotFound(name)
        del self._aliases[name]

    def get(self, name: str) -> str | None:
        return self._aliases.get(name)

    def get_all(self) -> dict[str, str]:
        """Copy of all aliases in insertion order."""
        return dict(self._aliases)

    def expand(self, line: str) -> str:
        """Substitute the first token if it names an alias.

        A line whose first token is not an alias comes back unchanged. On a
        match the token and the whitespace run after it are replaced, and the
        remainder is kept as typed. The result is not expanded again, so
        an alias whose command starts with another alias name stays as
        written.
        """
        parts = line.split(None, 1)
        expansion = self._aliases.get(parts[0]) if parts else None
        if expansion is None:
            return line
        if len(parts) == 1:
            return expansion
        return f"{expansion} {parts[1]}"

    def save(self, path: Path | None = None) -> Path:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        lock = FileLock(target.with_suffix(".lock"), timeout=10)
        with lock:
            with open(tmp, "w", encoding="utf-8", newline="\n") as f:
                for name, command in self._aliases.items():
                    f.write(f"{name}={command}\n")
            os.replace(tmp, target)
        log.debug("Saved %d aliases to %s", len(self._aliases), target)
        return target

    def load(self, path: Path | None = None) -> int:
        """Replace the table with the file's entries.

        Every entry is validated as by ``add``; invalid, reserved, duplicate
        and over-capacity entries are skipped with a debug log. A missing file
        yields an empty table. Returns the number of aliases loaded.
        """
        target = self._resolve(path)
        self._aliases.clear()
        if not target.exists():
            return 0

        with open(target, encoding="utf-8") as f:
            for lineno, raw in enumerate(f, start=1):
                line = raw.rstrip("\r\n")
                if not line:
                    continue
                name, sep, command = line.partition("=")
                if not sep or not name:
                    log.debug("%s:%d: skipping malformed alias line", target, lineno)
                    continue
                try:
                    self.add(name, command)
                except AliasError as e:
                    log.debug("%s:%d: skipping alias: %s", target, lineno, e)

        log.debug("Loaded %d aliases from %s", len(self._aliases), target)
        return len(self._aliases)

    def _resolve(self, path: Path | None) -> Path:
        if path is not None:
            return path
        if self.path is not None:
            return self.path
        from nexuflex.config.paths import default_aliases_path

        return default_aliases_path()
