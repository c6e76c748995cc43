"""Rolling record of the files and changes the user is looking at."""

from __future__ import annotations

import logging
from pathlib import PurePath
from typing import List, Optional

from .models import DEFAULT_SIGNIFICANCE_THRESHOLD, BuildStatus, ContextSnapshot

__all__ = ["ContextTracker"]

LOGGER = logging.getLogger(__name__)
_DEFAULT_MAX_RECENT_FILES = 3


class ContextTracker:
    """Maintains the current file, recent files, latest change and build status."""

    def __init__(
        self,
        *,
        max_recent_files: int = _DEFAULT_MAX_RECENT_FILES,
        significance_threshold: int = DEFAULT_SIGNIFICANCE_THRESHOLD,
    ) -> None:
        self._max_recent_files = max(1, int(max_recent_files))
        self._significance_threshold = max(0, int(significance_threshold))
        self._current_file: Optional[str] = None
        self._recent_files: List[str] = []
        self._last_change: Optional[str] = None
        self._build_status: Optional[BuildStatus] = None

    @property
    def current_file(self) -> Optional[str]:
        return self._current_file

    @property
    def recent_files(self) -> tuple[str, ...]:
        return tuple(self._recent_files)

    @property
    def last_change(self) -> Optional[str]:
        return self._last_change

    @property
    def build_status(self) -> Optional[BuildStatus]:
        return self._build_status

    @property
    def tracked_files(self) -> tuple[str, ...]:
        """Current file followed by recent files, capped at the recent limit."""

        files: List[str] = []
        if self._current_file:
            files.append(self._current_file)
        files.extend(path for path in self._recent_files if path != self._current_file)
        return tuple(files[: self._max_recent_files])

    @property
    def tracked_file_names(self) -> tuple[str, ...]:
        return tuple(PurePath(path).name or path for path in self.tracked_files)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_current_file(self, path: str | None) -> None:
        if not path:
            return
        if path == self._current_file:
            return
        if self._current_file is not None:
            self._push_recent(self._current_file)
        self._current_file = path
        LOGGER.debug("Current file: %s", path)

    def record_change(self, text: str) -> None:
        self._last_change = text
        LOGGER.debug("Code change recorded: %s", text[:50])

    def clear_change(self) -> None:
        self._last_change = None

    def set_build_status(self, status: BuildStatus | None) -> None:
        self._build_status = status
        if status is not None:
            LOGGER.debug("Build status: %s", status.description)

    def reset_after_acknowledgement(self) -> None:
        """Forget recent history once a suggestion was acted upon; keep the current file."""

        self._recent_files.clear()
        self._last_change = None
        LOGGER.debug("Context reset after acknowledgement")

    def full_reset(self) -> None:
        self._current_file = None
        self._recent_files.clear()
        self._last_change = None
        self._build_status = None
        LOGGER.debug("Full context reset")

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            current_file=self._current_file,
            recent_files=tuple(self._recent_files),
            change_description=self._last_change,
            build_status=self._build_status,
            significance_threshold=self._significance_threshold,
        )

    def _push_recent(self, path: str) -> None:
        self._recent_files = [entry for entry in self._recent_files if entry != path]
        self._recent_files.insert(0, path)
        del self._recent_files[self._max_recent_files :]
