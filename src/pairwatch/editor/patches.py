"""Exact and whitespace-tolerant resolution of snippet patches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

__all__ = [
    "PatchResolution",
    "find_occurrences",
    "patch_context",
    "replace_occurrences",
    "resolve_patch",
]

_INDENT_CHARS = " \t"
_TRIM_CHARS = " \t\r"


@dataclass(slots=True, frozen=True)
class PatchResolution:
    """The literal text to replace in a buffer and its replacement."""

    old_text: str
    new_text: str
    fuzzy: bool = False


def resolve_patch(content: str, old_text: str, new_text: str) -> Optional[PatchResolution]:
    """Locate ``old_text`` in ``content``, tolerating indentation drift.

    An exact substring match is used verbatim. Otherwise each line of
    ``old_text`` is compared to the buffer with surrounding spaces, tabs and
    carriage returns stripped; the first contiguous run of matching lines
    becomes the real old text and ``new_text`` is re-indented to match it
    line by line, joined with the matched lines' newline style. Lines of
    ``new_text`` beyond the matched span reuse the first matched line's
    indentation.
    """

    if not old_text:
        return None
    if old_text in content:
        return PatchResolution(old_text=old_text, new_text=new_text)
    return _resolve_fuzzy(content, old_text, new_text)


def _resolve_fuzzy(content: str, old_text: str, new_text: str) -> Optional[PatchResolution]:
    patch_lines = old_text.split("\n")
    content_lines = content.split("\n")
    if len(content_lines) < len(patch_lines):
        return None

    needle = [line.strip(_TRIM_CHARS) for line in patch_lines]
    if not any(needle):
        return None

    haystack = [line.strip(_TRIM_CHARS) for line in content_lines]
    start = _find_sequence(haystack, needle)
    if start is None:
        return None

    actual_lines = content_lines[start : start + len(patch_lines)]
    # CRLF buffers keep "\r" on every split line; the final one stays outside the match.
    newline = "\r\n" if any(line.endswith("\r") for line in actual_lines) else "\n"
    actual_old = "\n".join(actual_lines)
    if actual_old.endswith("\r"):
        actual_old = actual_old[:-1]

    base_indent = _leading_whitespace(actual_lines[0])
    adjusted: List[str] = []
    for index, line in enumerate(new_text.split("\n")):
        indent = _leading_whitespace(actual_lines[index]) if index < len(actual_lines) else base_indent
        adjusted.append(indent + line.strip(_TRIM_CHARS))

    return PatchResolution(
        old_text=actual_old,
        new_text=newline.join(adjusted),
        fuzzy=True,
    )


def _find_sequence(lines: Sequence[str], needle: Sequence[str]) -> int | None:
    segment = list(needle)
    limit = len(lines) - len(segment)
    for index in range(0, limit + 1):
        if list(lines[index : index + len(segment)]) == segment:
            return index
    return None


def _leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip(_INDENT_CHARS))]


def find_occurrences(content: str, needle: str) -> List[int]:
    """Return the start offsets of non-overlapping occurrences of ``needle``."""

    if not needle:
        return []
    offsets: List[int] = []
    cursor = content.find(needle)
    while cursor != -1:
        offsets.append(cursor)
        cursor = content.find(needle, cursor + len(needle))
    return offsets


def replace_occurrences(content: str, old_text: str, new_text: str, *, first_only: bool = False) -> tuple[str, int]:
    """Replace ``old_text`` in ``content``; return the new text and the replacement count."""

    if not old_text:
        return content, 0
    count = 1 if first_only else content.count(old_text)
    if count == 0 or old_text not in content:
        return content, 0
    return content.replace(old_text, new_text, count), count


def patch_context(content: str, needle: str, *, radius: int = 50) -> Optional[str]:
    """Return ``needle`` with up to ``radius`` characters of surrounding text."""

    if not needle:
        return None
    index = content.find(needle)
    if index == -1:
        return None
    start = max(0, index - radius)
    end = min(len(content), index + len(needle) + radius)
    return content[start:end]
