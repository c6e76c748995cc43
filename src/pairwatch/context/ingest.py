"""Translate raw change-source events into tracker updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, Dict, Iterable, Sequence

from .differ import ChangeDiffer
from .models import BuildStatus, ContextSnapshot
from .tracker import ContextTracker

__all__ = [
    "ChangeIngestor",
    "DEFAULT_IGNORED_FRAGMENTS",
    "DEFAULT_SOURCE_EXTENSIONS",
    "FileChangeEvent",
    "build_change_description",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_SOURCE_EXTENSIONS: tuple[str, ...] = (
    "swift", "m", "mm", "h", "c", "cpp", "cc", "py", "js", "ts", "json", "yaml", "yml",
)
DEFAULT_IGNORED_FRAGMENTS: tuple[str, ...] = (
    ".git", "node_modules", ".build", "DerivedData", ".swiftpm", "__pycache__", ".venv",
)
_DEFAULT_MAX_CONTEXT_LINES = 200

ContextListener = Callable[[ContextSnapshot], None]


@dataclass(slots=True, frozen=True)
class FileChangeEvent:
    """A saved or modified file as reported by the change source."""

    path: str
    content: str


def build_change_description(
    path: str,
    content: str,
    *,
    previous: str | None = None,
    differ: ChangeDiffer | None = None,
    max_lines: int = _DEFAULT_MAX_CONTEXT_LINES,
) -> str:
    """Describe ``content`` for the suggestion service, leading with the delta when known."""

    name = PurePath(path).name or path
    parts: list[str] = []
    if previous is not None:
        delta = (differ or ChangeDiffer()).diff(previous, content)
        if delta:
            parts.append(f"RECENT CHANGES in {name}:\n{delta}\n\n")

    lines = content.split("\n")
    limit = max(1, max_lines)
    parts.append(f"FULL FILE {name} ({len(lines)} lines):\n")
    parts.append("\n".join(lines[:limit]))
    if len(lines) > limit:
        parts.append(f"\n... [truncated, {len(lines) - limit} more lines]")
    return "".join(parts)


class ChangeIngestor:
    """Feeds file events, the active-file signal and build status into a tracker.

    Every accepted event produces a fresh snapshot handed to ``listener``; the
    listener (normally the orchestrator) decides whether it is significant.
    """

    def __init__(
        self,
        tracker: ContextTracker,
        listener: ContextListener | None = None,
        *,
        differ: ChangeDiffer | None = None,
        source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
        ignored_fragments: Sequence[str] = DEFAULT_IGNORED_FRAGMENTS,
        max_context_lines: int = _DEFAULT_MAX_CONTEXT_LINES,
    ) -> None:
        self._tracker = tracker
        self._listener = listener
        self._differ = differ or ChangeDiffer()
        self._extensions = {ext.lower().lstrip(".") for ext in source_extensions}
        self._ignored = tuple(ignored_fragments)
        self._max_context_lines = max_context_lines
        self._contents: Dict[str, str] = {}

    @property
    def tracker(self) -> ContextTracker:
        return self._tracker

    def set_listener(self, listener: ContextListener | None) -> None:
        self._listener = listener

    def is_source_file(self, path: str) -> bool:
        if any(fragment in path for fragment in self._ignored):
            return False
        suffix = PurePath(path).suffix.lower().lstrip(".")
        return bool(suffix) and suffix in self._extensions

    def handle_file_event(self, event: FileChangeEvent) -> bool:
        path = event.path
        if not self.is_source_file(path):
            return False
        previous = self._contents.get(path)
        if previous == event.content:
            return False

        LOGGER.debug("File changed: %s (known=%s)", path, previous is not None)
        description = build_change_description(
            path,
            event.content,
            previous=previous,
            differ=self._differ,
            max_lines=self._max_context_lines,
        )
        self._contents[path] = event.content
        self._tracker.set_current_file(path)
        self._tracker.record_change(description)
        self._notify()
        return True

    def handle_active_file(self, path: str | None) -> bool:
        if not path or not self.is_source_file(path):
            return False
        if path == self._tracker.current_file:
            return False
        self._tracker.set_current_file(path)
        self._notify()
        return True

    def handle_build_status(self, status: BuildStatus | None) -> bool:
        self._tracker.set_build_status(status)
        self._notify()
        return True

    def forget(self, path: str) -> None:
        self._contents.pop(path, None)

    def _notify(self) -> None:
        if self._listener is None:
            return
        self._listener(self._tracker.snapshot())
