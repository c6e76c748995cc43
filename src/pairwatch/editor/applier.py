"""Apply suggestion patches to a live editor buffer or the file on disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from ..orchestration.models import Patch, PatchResult
from ..utils.file_io import detect_newline, read_text, write_text
from .buffers import BufferProvider, LiveBufferAccessor, TextRange
from .patches import PatchResolution, find_occurrences, patch_context, replace_occurrences, resolve_patch

__all__ = ["PatchApplier", "PatchPreview", "ReplaceMode"]

LOGGER = logging.getLogger(__name__)

ReplaceMode = Literal["all", "first"]
_REPLACE_MODES: tuple[str, ...] = ("all", "first")


@dataclass(slots=True, frozen=True)
class PatchPreview:
    """Whether a patch resolves against its target, with nearby text for display."""

    can_apply: bool
    context: str | None = None
    fuzzy: bool = False


@dataclass(slots=True)
class _Source:
    kind: str
    text: str
    accessor: Optional[LiveBufferAccessor] = None


class PatchApplier:
    """Resolves a :class:`Patch` against current content and rewrites it.

    A live buffer registered for the target file wins over the file on disk.
    By default every literal occurrence of the resolved old text is replaced,
    not only the one that was located; ``replace_mode="first"`` limits the
    rewrite to the first occurrence.
    """

    def __init__(
        self,
        *,
        buffer_provider: BufferProvider | None = None,
        replace_mode: ReplaceMode = "all",
        encoding: str = "utf-8",
    ) -> None:
        if replace_mode not in _REPLACE_MODES:
            raise ValueError(f"Unsupported replace mode: {replace_mode!r}")
        self._buffer_provider = buffer_provider
        self._replace_mode = replace_mode
        self._encoding = encoding

    @property
    def replace_mode(self) -> str:
        return self._replace_mode

    def apply(self, patch: Patch) -> PatchResult:
        source = self._load(patch.file_path)
        if source is None:
            LOGGER.info("Patch target not found: %s", patch.file_path)
            return PatchResult.file_not_found(patch.file_path)

        resolution = resolve_patch(source.text, patch.old_text, patch.new_text)
        if resolution is None:
            LOGGER.info("Patch code not found in %s (%s): %s", patch.file_path, source.kind, patch.old_text[:50])
            return PatchResult.code_not_found(source=source.kind)
        if resolution.fuzzy:
            LOGGER.debug("Patch resolved with whitespace-tolerant matching in %s", patch.file_path)

        if source.accessor is not None:
            return self._apply_to_buffer(source.accessor, source.text, resolution)
        return self._apply_to_file(patch.file_path, source.text, resolution)

    def preview(self, patch: Patch) -> PatchPreview:
        source = self._load(patch.file_path)
        if source is None:
            return PatchPreview(can_apply=False)
        resolution = resolve_patch(source.text, patch.old_text, patch.new_text)
        if resolution is None:
            return PatchPreview(can_apply=False)
        return PatchPreview(
            can_apply=True,
            context=patch_context(source.text, resolution.old_text),
            fuzzy=resolution.fuzzy,
        )

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------
    def _load(self, path: str) -> Optional[_Source]:
        accessor = self._buffer_provider(path) if self._buffer_provider is not None else None
        if accessor is not None:
            text = accessor.get_text()
            if text is not None:
                return _Source(kind="buffer", text=text, accessor=accessor)
            LOGGER.debug("Live buffer for %s returned no text; falling back to disk", path)
        try:
            text = read_text(path, encoding=self._encoding, normalize_newlines=False)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.debug("Unable to read %s: %s", path, exc)
            return None
        return _Source(kind="file", text=text)

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------
    def _apply_to_buffer(
        self,
        accessor: LiveBufferAccessor,
        text: str,
        resolution: PatchResolution,
    ) -> PatchResult:
        offsets = find_occurrences(text, resolution.old_text)
        if self._replace_mode == "first":
            offsets = offsets[:1]
        if not offsets:
            return PatchResult.code_not_found(source="buffer")

        selection = accessor.get_selection()
        visible = accessor.get_visible_range()

        length = len(resolution.old_text)
        # Last-to-first keeps earlier offsets valid while the buffer changes.
        for offset in reversed(offsets):
            if not accessor.set_selection(TextRange(offset, length)):
                return PatchResult.write_error("Failed to set selection range", source="buffer")
            if not accessor.replace_selection(resolution.new_text):
                return PatchResult.write_error("Failed to replace selected text", source="buffer")

        if visible is not None:
            accessor.set_visible_range(visible)
        if selection is not None:
            accessor.set_selection(selection)
        LOGGER.info("Patched live buffer (%s occurrence(s))", len(offsets))
        return PatchResult.success(source="buffer", replacements=len(offsets))

    def _apply_to_file(self, path: str, text: str, resolution: PatchResolution) -> PatchResult:
        updated, count = replace_occurrences(
            text,
            resolution.old_text,
            resolution.new_text,
            first_only=self._replace_mode == "first",
        )
        if count == 0:
            return PatchResult.code_not_found(source="file")
        try:
            write_text(path, updated, encoding=self._encoding, newline=detect_newline(text), atomic=True)
        except OSError as exc:
            LOGGER.warning("Patch write failed for %s: %s", path, exc)
            return PatchResult.write_error(str(exc), source="file")
        LOGGER.info("Patched %s (%s occurrence(s))", path, count)
        return PatchResult.success(source="file", replacements=count)
