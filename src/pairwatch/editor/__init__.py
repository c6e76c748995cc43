"""Patch resolution and application against live buffers or files."""

from .applier import PatchApplier, PatchPreview
from .buffers import BufferRegistry, InMemoryBuffer, LiveBufferAccessor, TextRange
from .patches import PatchResolution, resolve_patch

__all__ = [
    "BufferRegistry",
    "InMemoryBuffer",
    "LiveBufferAccessor",
    "PatchApplier",
    "PatchPreview",
    "PatchResolution",
    "TextRange",
    "resolve_patch",
]
