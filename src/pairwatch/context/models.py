"""Immutable context snapshots describing what the user is working on."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, Optional, Sequence

__all__ = [
    "BuildState",
    "BuildStatus",
    "ContextSnapshot",
    "DEFAULT_SIGNIFICANCE_THRESHOLD",
    "language_for_path",
]

DEFAULT_SIGNIFICANCE_THRESHOLD = 30

_LANGUAGE_BY_SUFFIX: Dict[str, str] = {
    ".swift": "swift",
    ".m": "objective-c",
    ".mm": "objective-c",
    ".h": "c",
    ".c": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}


def language_for_path(path: str | None) -> str:
    """Return a fence language hint for ``path`` based on its suffix."""

    if not path:
        return "text"
    return _LANGUAGE_BY_SUFFIX.get(PurePath(path).suffix.lower(), "text")


def _basename(path: str) -> str:
    return PurePath(path).name or path


class BuildState(Enum):
    """Coarse build lifecycle reported by the host."""

    BUILDING = "building"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class BuildStatus:
    """Latest build outcome; failures carry their error count."""

    state: BuildState
    error_count: int = 0
    errors: tuple[str, ...] = ()

    @classmethod
    def building(cls) -> "BuildStatus":
        return cls(BuildState.BUILDING)

    @classmethod
    def succeeded(cls) -> "BuildStatus":
        return cls(BuildState.SUCCEEDED)

    @classmethod
    def failed(cls, errors: Sequence[str] = (), *, error_count: int | None = None) -> "BuildStatus":
        messages = tuple(str(item) for item in errors)
        count = len(messages) if error_count is None else max(0, int(error_count))
        return cls(BuildState.FAILED, error_count=count, errors=messages)

    @property
    def is_failed(self) -> bool:
        return self.state is BuildState.FAILED

    @property
    def description(self) -> str:
        if self.state is BuildState.SUCCEEDED:
            return "Build succeeded"
        if self.state is BuildState.FAILED:
            return f"Build failed: {self.error_count} error(s)"
        return "Building..."


@dataclass(slots=True, frozen=True)
class ContextSnapshot:
    """Bounded description of the current editing state.

    Snapshots are produced by :class:`~pairwatch.context.tracker.ContextTracker`
    and never mutated; every tracked mutation yields a new instance.
    """

    current_file: Optional[str] = None
    recent_files: tuple[str, ...] = field(default_factory=tuple)
    change_description: Optional[str] = None
    build_status: Optional[BuildStatus] = None
    significance_threshold: int = field(default=DEFAULT_SIGNIFICANCE_THRESHOLD, compare=False)

    @property
    def is_critical(self) -> bool:
        """Critical snapshots bypass rate limiting."""

        return self.build_status is not None and self.build_status.is_failed

    def is_significant(self, previous: "ContextSnapshot | None") -> bool:
        """Return ``True`` when this snapshot warrants a new suggestion request."""

        if previous is None:
            return self.current_file is not None

        if self.current_file is not None and self.current_file != previous.current_file:
            return True

        if self.is_critical and previous.build_status != self.build_status:
            return True

        change = self.change_description
        return bool(change) and len(change) > self.significance_threshold

    @property
    def current_file_name(self) -> str | None:
        if not self.current_file:
            return None
        return _basename(self.current_file)

    @property
    def recent_file_names(self) -> tuple[str, ...]:
        return tuple(_basename(path) for path in self.recent_files)

    @property
    def language(self) -> str:
        return language_for_path(self.current_file)

    def to_payload(self) -> Dict[str, Any]:
        """Return the serialized form sent to the suggestion service."""

        payload: Dict[str, Any] = {
            "current_file": self.current_file_name,
            "recent_files": list(self.recent_file_names),
            "language": self.language,
        }
        if self.change_description:
            payload["change"] = self.change_description
        if self.build_status is not None:
            payload["build_status"] = self.build_status.description
        return payload
