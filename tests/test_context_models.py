"""Tests for context snapshots and the context tracker."""

from __future__ import annotations

from pairwatch.context.models import BuildState, BuildStatus, ContextSnapshot, language_for_path
from pairwatch.context.tracker import ContextTracker


class TestSignificance:
    def test_first_snapshot_with_file_is_significant(self) -> None:
        assert ContextSnapshot(current_file="/a/main.py").is_significant(None)

    def test_first_snapshot_without_file_is_not_significant(self) -> None:
        assert not ContextSnapshot().is_significant(None)

    def test_file_switch_is_significant(self) -> None:
        previous = ContextSnapshot(current_file="/a/one.py")
        current = ContextSnapshot(current_file="/a/two.py")
        assert current.is_significant(previous)

    def test_new_build_failure_is_significant(self) -> None:
        previous = ContextSnapshot(current_file="/a/one.py", build_status=BuildStatus.succeeded())
        current = ContextSnapshot(current_file="/a/one.py", build_status=BuildStatus.failed(["boom"]))
        assert current.is_significant(previous)

    def test_same_build_failure_is_not_significant_on_its_own(self) -> None:
        failure = BuildStatus.failed(["boom"])
        previous = ContextSnapshot(current_file="/a/one.py", build_status=failure)
        current = ContextSnapshot(current_file="/a/one.py", build_status=failure)
        assert not current.is_significant(previous)

    def test_change_must_exceed_threshold(self) -> None:
        previous = ContextSnapshot(current_file="/a/one.py")
        short = ContextSnapshot(current_file="/a/one.py", change_description="x" * 30)
        long = ContextSnapshot(current_file="/a/one.py", change_description="x" * 31)
        assert not short.is_significant(previous)
        assert long.is_significant(previous)

    def test_threshold_is_configurable(self) -> None:
        previous = ContextSnapshot(current_file="/a/one.py")
        current = ContextSnapshot(
            current_file="/a/one.py",
            change_description="tiny",
            significance_threshold=2,
        )
        assert current.is_significant(previous)


def test_build_status_helpers() -> None:
    failed = BuildStatus.failed(["e1", "e2"])
    assert failed.state is BuildState.FAILED
    assert failed.error_count == 2
    assert failed.is_failed
    assert failed.description == "Build failed: 2 error(s)"
    assert BuildStatus.failed(error_count=7).error_count == 7
    assert BuildStatus.succeeded().description == "Build succeeded"
    assert not BuildStatus.building().is_failed


def test_snapshot_is_critical_only_on_failure() -> None:
    assert ContextSnapshot(build_status=BuildStatus.failed()).is_critical
    assert not ContextSnapshot(build_status=BuildStatus.succeeded()).is_critical
    assert not ContextSnapshot().is_critical


def test_snapshot_payload_uses_basenames() -> None:
    snapshot = ContextSnapshot(
        current_file="/repo/src/view.swift",
        recent_files=("/repo/src/model.swift",),
        change_description="delta",
        build_status=BuildStatus.succeeded(),
    )

    payload = snapshot.to_payload()

    assert payload == {
        "current_file": "view.swift",
        "recent_files": ["model.swift"],
        "language": "swift",
        "change": "delta",
        "build_status": "Build succeeded",
    }


def test_language_for_path() -> None:
    assert language_for_path("x.py") == "python"
    assert language_for_path("x.MM") == "objective-c"
    assert language_for_path("README") == "text"
    assert language_for_path(None) == "text"


class TestContextTracker:
    def test_switching_files_tracks_recent_history(self) -> None:
        tracker = ContextTracker(max_recent_files=3)
        for name in ("a", "b", "c", "d", "e"):
            tracker.set_current_file(f"/p/{name}.py")

        assert tracker.current_file == "/p/e.py"
        assert tracker.recent_files == ("/p/d.py", "/p/c.py", "/p/b.py")

    def test_revisiting_a_file_moves_it_to_front(self) -> None:
        tracker = ContextTracker()
        tracker.set_current_file("/p/a.py")
        tracker.set_current_file("/p/b.py")
        tracker.set_current_file("/p/a.py")
        tracker.set_current_file("/p/c.py")

        assert tracker.recent_files == ("/p/a.py", "/p/b.py")

    def test_same_or_empty_path_is_ignored(self) -> None:
        tracker = ContextTracker()
        tracker.set_current_file("/p/a.py")
        tracker.set_current_file("/p/a.py")
        tracker.set_current_file("")
        tracker.set_current_file(None)

        assert tracker.current_file == "/p/a.py"
        assert tracker.recent_files == ()

    def test_tracked_files_never_exceed_limit(self) -> None:
        tracker = ContextTracker(max_recent_files=2)
        for name in ("a", "b", "c"):
            tracker.set_current_file(f"/p/{name}.py")

        assert tracker.tracked_files == ("/p/c.py", "/p/b.py")
        assert tracker.tracked_file_names == ("c.py", "b.py")

    def test_acknowledgement_keeps_current_file(self) -> None:
        tracker = ContextTracker()
        tracker.set_current_file("/p/a.py")
        tracker.set_current_file("/p/b.py")
        tracker.record_change("some change")
        tracker.set_build_status(BuildStatus.failed(["x"]))

        tracker.reset_after_acknowledgement()

        assert tracker.current_file == "/p/b.py"
        assert tracker.recent_files == ()
        assert tracker.last_change is None
        assert tracker.build_status is not None

    def test_full_reset_clears_everything(self) -> None:
        tracker = ContextTracker()
        tracker.set_current_file("/p/a.py")
        tracker.record_change("change")
        tracker.set_build_status(BuildStatus.succeeded())

        tracker.full_reset()

        assert tracker.snapshot() == ContextSnapshot()

    def test_snapshot_carries_threshold(self) -> None:
        tracker = ContextTracker(significance_threshold=5)
        tracker.set_current_file("/p/a.py")
        tracker.record_change("123456")

        snapshot = tracker.snapshot()

        assert snapshot.significance_threshold == 5
        assert snapshot.change_description == "123456"
        assert snapshot.is_significant(ContextSnapshot(current_file="/p/a.py"))
