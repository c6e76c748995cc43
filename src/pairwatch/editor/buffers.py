"""Live editor buffer capability used by the patch applier."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

__all__ = [
    "BufferProvider",
    "BufferRegistry",
    "InMemoryBuffer",
    "LiveBufferAccessor",
    "TextRange",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TextRange:
    """Character range expressed as a start offset and a length."""

    location: int
    length: int = 0

    @property
    def end(self) -> int:
        return self.location + self.length

    def as_tuple(self) -> tuple[int, int]:
        return (self.location, self.length)


@runtime_checkable
class LiveBufferAccessor(Protocol):
    """Host-specific handle on an editor buffer that is open for a file.

    Every method may fail softly: getters return ``None`` when the host cannot
    answer and setters return ``False`` when they could not apply the change.
    """

    def get_text(self) -> Optional[str]:
        ...

    def get_selection(self) -> Optional[TextRange]:
        ...

    def set_selection(self, selection: TextRange) -> bool:
        ...

    def replace_selection(self, text: str) -> bool:
        ...

    def get_visible_range(self) -> Optional[TextRange]:
        ...

    def set_visible_range(self, visible: TextRange) -> bool:
        ...


BufferProvider = Callable[[str], Optional[LiveBufferAccessor]]


class InMemoryBuffer:
    """Plain-text :class:`LiveBufferAccessor` for embedding hosts and tests."""

    def __init__(self, text: str = "", *, selection: TextRange | None = None, visible: TextRange | None = None) -> None:
        self._text = text
        self._selection = selection or TextRange(0, 0)
        self._visible = visible
        self._lock = RLock()

    @property
    def text(self) -> str:
        return self._text

    def get_text(self) -> Optional[str]:
        with self._lock:
            return self._text

    def get_selection(self) -> Optional[TextRange]:
        return self._selection

    def set_selection(self, selection: TextRange) -> bool:
        with self._lock:
            if selection.location < 0 or selection.length < 0 or selection.end > len(self._text):
                return False
            self._selection = selection
            return True

    def replace_selection(self, text: str) -> bool:
        with self._lock:
            start, end = self._selection.location, self._selection.end
            self._text = self._text[:start] + text + self._text[end:]
            self._selection = TextRange(start + len(text), 0)
            return True

    def get_visible_range(self) -> Optional[TextRange]:
        return self._visible

    def set_visible_range(self, visible: TextRange) -> bool:
        self._visible = visible
        return True


class BufferRegistry:
    """Maps file paths to the live buffers currently open for them."""

    def __init__(self) -> None:
        self._buffers: Dict[str, LiveBufferAccessor] = {}
        self._lock = RLock()

    def register(self, path: str, accessor: LiveBufferAccessor) -> None:
        key = self._normalize(path)
        with self._lock:
            self._buffers[key] = accessor
        LOGGER.debug("Live buffer registered for %s", key)

    def unregister(self, path: str) -> None:
        with self._lock:
            self._buffers.pop(self._normalize(path), None)

    def get(self, path: str) -> Optional[LiveBufferAccessor]:
        with self._lock:
            return self._buffers.get(self._normalize(path))

    def __call__(self, path: str) -> Optional[LiveBufferAccessor]:
        return self.get(path)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None

    @staticmethod
    def _normalize(path: str) -> str:
        return os.path.abspath(os.path.expanduser(path))
