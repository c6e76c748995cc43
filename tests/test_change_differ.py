"""Tests for the positional change differ and change ingestion."""

from __future__ import annotations

import pytest

from pairwatch.context.differ import ChangeDiffer, describe_changes
from pairwatch.context.ingest import ChangeIngestor, FileChangeEvent, build_change_description
from pairwatch.context.models import BuildStatus, ContextSnapshot
from pairwatch.context.tracker import ContextTracker


def test_diff_reports_changed_line_both_ways() -> None:
    result = ChangeDiffer().diff("a\nb\nc", "a\nB\nc")

    assert result == "- L2: b\n+ L2: B\n"


def test_diff_of_identical_text_is_empty() -> None:
    assert describe_changes("same\ntext", "same\ntext") == ""


def test_diff_skips_blank_lines() -> None:
    result = ChangeDiffer().diff("a\n   \n", "a\n\t\nnew")

    assert result == "+ L3: new\n"


def test_inserted_line_shifts_following_lines() -> None:
    result = ChangeDiffer().diff("one\ntwo", "zero\none\ntwo")

    assert result.splitlines() == [
        "- L1: one",
        "- L2: two",
        "+ L1: zero",
        "+ L2: one",
        "+ L3: two",
    ]


def test_diff_is_capped_with_summary() -> None:
    old = "\n".join(f"line {i}" for i in range(15))
    new = "\n".join(f"LINE {i}" for i in range(15))

    result = ChangeDiffer(max_entries=3).diff(old, new)
    lines = result.splitlines()

    assert lines[:3] == ["- L1: line 0", "- L2: line 1", "- L3: line 2"]
    assert lines[3:6] == ["+ L1: LINE 0", "+ L2: LINE 1", "+ L3: LINE 2"]
    assert lines[-1] == "... [15 deletions, 15 additions total]"


def test_change_description_without_history_has_full_file_only() -> None:
    description = build_change_description("/src/app.py", "x = 1\ny = 2")

    assert description == "FULL FILE app.py (2 lines):\nx = 1\ny = 2"


def test_change_description_leads_with_recent_changes() -> None:
    description = build_change_description("/src/app.py", "x = 2", previous="x = 1")

    assert description.startswith("RECENT CHANGES in app.py:\n- L1: x = 1\n+ L1: x = 2\n\n\n")
    assert description.endswith("FULL FILE app.py (1 lines):\nx = 2")


def test_change_description_truncates_long_files() -> None:
    content = "\n".join(str(i) for i in range(250))

    description = build_change_description("/src/big.py", content, max_lines=200)

    assert description.endswith("\n199\n... [truncated, 50 more lines]")


class TestChangeIngestor:
    @pytest.fixture
    def received(self) -> list[ContextSnapshot]:
        return []

    @pytest.fixture
    def ingestor(self, received: list[ContextSnapshot]) -> ChangeIngestor:
        return ChangeIngestor(ContextTracker(), received.append)

    def test_source_file_event_updates_tracker(self, ingestor: ChangeIngestor, received: list) -> None:
        assert ingestor.handle_file_event(FileChangeEvent("/p/app.py", "print('hi')"))

        assert ingestor.tracker.current_file == "/p/app.py"
        assert len(received) == 1
        assert received[0].change_description.startswith("FULL FILE app.py")

    def test_noise_paths_and_foreign_extensions_are_ignored(self, ingestor: ChangeIngestor, received: list) -> None:
        assert not ingestor.handle_file_event(FileChangeEvent("/p/.git/config.py", "x"))
        assert not ingestor.handle_file_event(FileChangeEvent("/p/node_modules/lib.js", "x"))
        assert not ingestor.handle_file_event(FileChangeEvent("/p/image.png", "x"))
        assert not ingestor.handle_file_event(FileChangeEvent("/p/Makefile", "x"))
        assert received == []

    def test_unchanged_content_is_ignored(self, ingestor: ChangeIngestor, received: list) -> None:
        ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a"))

        assert not ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a"))
        assert len(received) == 1

    def test_second_event_includes_diff(self, ingestor: ChangeIngestor, received: list) -> None:
        ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a = 1"))
        ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a = 2"))

        assert "RECENT CHANGES in app.py:" in received[-1].change_description

    def test_forget_drops_history(self, ingestor: ChangeIngestor, received: list) -> None:
        ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a = 1"))
        ingestor.forget("/p/app.py")
        ingestor.handle_file_event(FileChangeEvent("/p/app.py", "a = 2"))

        assert "RECENT CHANGES" not in received[-1].change_description

    def test_active_file_notifies_only_on_switch(self, ingestor: ChangeIngestor, received: list) -> None:
        assert ingestor.handle_active_file("/p/one.swift")
        assert not ingestor.handle_active_file("/p/one.swift")
        assert not ingestor.handle_active_file(None)
        assert ingestor.handle_active_file("/p/two.swift")

        assert [snap.current_file for snap in received] == ["/p/one.swift", "/p/two.swift"]
        assert received[-1].recent_files == ("/p/one.swift",)

    def test_build_status_is_forwarded(self, ingestor: ChangeIngestor, received: list) -> None:
        ingestor.handle_build_status(BuildStatus.failed(["E1"]))

        assert received[-1].is_critical

    def test_custom_extensions(self, received: list) -> None:
        ingestor = ChangeIngestor(ContextTracker(), received.append, source_extensions=[".rs"])

        assert ingestor.is_source_file("/p/main.rs")
        assert not ingestor.is_source_file("/p/main.py")
