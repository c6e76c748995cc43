"""Positional line delta used to describe what changed in a file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

__all__ = ["ChangeDiffer", "describe_changes"]

_DEFAULT_MAX_ENTRIES = 10


@dataclass(slots=True)
class ChangeDiffer:
    """Compare two versions of a text line-by-line by index.

    This is not a minimal diff: an inserted line shifts every following index
    and each shifted line is reported as both a deletion and an addition. The
    output is only meant as cheap context for the suggestion service.
    """

    max_entries: int = _DEFAULT_MAX_ENTRIES

    def diff(self, old_text: str, new_text: str) -> str:
        old_lines = old_text.split("\n")
        new_lines = new_text.split("\n")
        deletions: List[Tuple[int, str]] = []
        additions: List[Tuple[int, str]] = []

        for index in range(max(len(old_lines), len(new_lines))):
            old_line = old_lines[index] if index < len(old_lines) else None
            new_line = new_lines[index] if index < len(new_lines) else None
            if old_line == new_line:
                continue
            if old_line is not None and old_line.strip(" \t"):
                deletions.append((index + 1, old_line))
            if new_line is not None and new_line.strip(" \t"):
                additions.append((index + 1, new_line))

        limit = max(0, self.max_entries)
        parts: List[str] = []
        for line_no, text in deletions[:limit]:
            parts.append(f"- L{line_no}: {text}\n")
        for line_no, text in additions[:limit]:
            parts.append(f"+ L{line_no}: {text}\n")
        if len(deletions) > limit or len(additions) > limit:
            parts.append(f"... [{len(deletions)} deletions, {len(additions)} additions total]\n")
        return "".join(parts)


def describe_changes(old_text: str, new_text: str, *, max_entries: int = _DEFAULT_MAX_ENTRIES) -> str:
    return ChangeDiffer(max_entries=max_entries).diff(old_text, new_text)
