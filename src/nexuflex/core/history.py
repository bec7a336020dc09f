"""Bounded, navigable command history with line-oriented persistence."""

from __future__ import annotations

import os
from pathlib import Path

from filelock import FileLock

from nexuflex.logging import get_logger

log = get_logger("history")

DEFAULT_MAX_ENTRIES = 100


class HistoryStore:
    """Ordered log of submitted command lines.

    Adjacent duplicates and blank lines are never stored, and the oldest
    entries are evicted once ``max_entries`` is exceeded. A navigation cursor
    walks the entries for Up/Down recall; ``len(entries)`` means "past the
    end", i.e. nothing selected and the input line should be empty.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, path: Path | None = None) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self.path = path
        self._entries: list[str] = []
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[str]:
        """Copy of the stored lines, oldest first."""
        return list(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    def record(self, line: str) -> bool:
        """Append a line. Returns False if it was blank or repeats the last entry."""
        line = line.strip()
        if not line:
            return False
        if self._entries and self._entries[-1] == line:
            return False

        self._entries.append(line)
        if len(self._entries) > self.max_entries:
            del self._entries[: len(self._entries) - self.max_entries]
        self._cursor = len(self._entries)
        return True

    def previous(self) -> str | None:
        """Step back one entry. Returns None when already at the oldest."""
        if self._cursor <= 0:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def next(self) -> str | None:
        """Step forward one entry.

        Returns None when already past the end. Stepping onto the past-the-end
        position returns "" so the caller clears its input.
        """
        if self._cursor >= len(self._entries):
            return None
        self._cursor += 1
        if self._cursor == len(self._entries):
            return ""
        return self._entries[self._cursor]

    def reset_navigation(self) -> None:
        self._cursor = len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = 0

    def save(self, path: Path | None = None) -> Path:
        """Write entries as newline-delimited lines. Returns the path written.

        The file is replaced atomically so an interrupted save never leaves a
        truncated history behind. Shells sharing the file are serialised by a
        lock file beside it.
        """
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        lock = FileLock(target.with_suffix(".lock"), timeout=10)
        with lock:
            with open(tmp, "w", encoding="utf-8", newline="\n") as f:
                for entry in self._entries:
                    f.write(entry + "\n")
            os.replace(tmp, target)
        log.debug("Saved %d history entries to %s", len(self._entries), target)
        return target

    def load(self, path: Path | None = None) -> int:
        """Replace the history with the file's contents.

        Each line goes through ``record`` so blank lines, adjacent duplicates
        and the capacity bound apply exactly as for typed input. A missing
        file yields an empty history. Returns the number of entries kept.
        """
        target = self._resolve(path)
        self._entries.clear()
        if target.exists():
            with open(target, encoding="utf-8") as f:
                for line in f:
                    self.record(line)
        self.reset_navigation()
        log.debug("Loaded %d history entries from %s", len(self._entries), target)
        return len(self._entries)

    def _resolve(self, path: Path | None) -> Path:
        if path is not None:
            return path
        if self.path is not None:
            return self.path
        from nexuflex.config.paths import default_history_path

        return default_history_path()
