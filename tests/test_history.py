"""Tests for HistoryStore."""

from __future__ import annotations

from pathlib import Path

import pytest

from nexuflex.core.history import HistoryStore


class TestRecord:
    """Tests for recording lines."""

    def test_blank_and_adjacent_duplicates_skipped(self) -> None:
        history = HistoryStore()

        assert history.record("Sales.List")
        assert not history.record("   ")
        assert not history.record("Sales.List")
        assert history.record("Sales.Show 1")
        assert history.record("Sales.List")

        assert history.entries == ["Sales.List", "Sales.Show 1", "Sales.List"]

    def test_lines_are_stripped(self) -> None:
        history = HistoryStore()
        history.record("  status \n")
        assert history.entries == ["status"]

    def test_oldest_evicted_at_capacity(self) -> None:
        history = HistoryStore(max_entries=3)
        for line in ("a", "b", "c", "d", "e"):
            history.record(line)

        assert history.entries == ["c", "d", "e"]
        assert len(history) == 3

    def test_entries_is_a_copy(self) -> None:
        history = HistoryStore()
        history.record("a")
        history.entries.append("b")
        assert history.entries == ["a"]

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            HistoryStore(max_entries=0)


class TestNavigation:
    """Tests for Up/Down navigation."""

    @pytest.fixture
    def history(self) -> HistoryStore:
        history = HistoryStore()
        for line in ("first", "second", "third"):
            history.record(line)
        return history

    def test_walk_back_and_forward(self, history: HistoryStore) -> None:
        assert history.previous() == "third"
        assert history.previous() == "second"
        assert history.previous() == "first"
        assert history.previous() is None
        assert history.cursor == 0

        assert history.next() == "second"
        assert history.next() == "third"
        assert history.next() == ""
        assert history.next() is None
        assert history.cursor == len(history)

    def test_record_resets_cursor(self, history: HistoryStore) -> None:
        history.previous()
        history.previous()
        history.record("fourth")

        assert history.cursor == 4
        assert history.previous() == "fourth"

    def test_empty_history(self) -> None:
        history = HistoryStore()
        assert history.previous() is None
        assert history.next() is None

    def test_clear(self, history: HistoryStore) -> None:
        history.clear()
        assert history.entries == []
        assert history.cursor == 0


class TestPersistence:
    """Tests for save and load."""

    def test_save_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / "history"
        history = HistoryStore(path=path)
        for line in ("connect app01", "login bob", "Sales.List"):
            history.record(line)

        history.save()

        assert path.read_text(encoding="utf-8") == "connect app01\nlogin bob\nSales.List\n"
        restored = HistoryStore(path=path)
        assert restored.load() == 3
        assert restored.entries == history.entries
        assert restored.previous() == "Sales.List"

    def test_save_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "history"
        HistoryStore().save(path)
        assert path.exists()

    def test_load_missing_file(self, tmp_path: Path) -> None:
        history = HistoryStore()
        history.record("stale")
        assert history.load(tmp_path / "missing") == 0
        assert history.entries == []

    def test_load_applies_recording_rules(self, tmp_path: Path) -> None:
        """Blank lines, duplicates and overflow in the file are normalised."""
        path = tmp_path / "history"
        path.write_text("a\n\na\nb\r\nc\nd\n", encoding="utf-8")

        history = HistoryStore(max_entries=3)
        history.load(path)

        assert history.entries == ["b", "c", "d"]

    def test_default_path_under_config_home(self, tmp_path: Path) -> None:
        written = HistoryStore().save()
        assert tmp_path in written.parents
