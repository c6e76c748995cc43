"""Typed, per-event-kind publish/subscribe channels."""

from __future__ import annotations

import logging
import weakref
from threading import RLock
from typing import Callable, Generic, List, TypeVar

__all__ = ["EventChannel"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
Handler = Callable[[T], None]


class EventChannel(Generic[T]):
    """Synchronous channel carrying a single payload type.

    Subscribers run in subscription order on the publishing thread. A failing
    subscriber is logged and does not prevent later subscribers from running.
    With ``weak=True`` bound methods are held through :class:`weakref.WeakMethod`
    and dropped once their owner is collected.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: List[Callable[[], Handler[T] | None]] = []
        self._lock = RLock()

    def subscribe(self, handler: Handler[T], *, weak: bool = False) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unsubscribes it."""

        resolver = self._wrap(handler, weak=weak)
        with self._lock:
            self._subscribers.append(resolver)

        def _unsubscribe() -> None:
            with self._lock:
                if resolver in self._subscribers:
                    self._subscribers.remove(resolver)

        return _unsubscribe

    def publish(self, payload: T) -> int:
        """Deliver ``payload`` to every live subscriber; return how many ran."""

        handlers: list[Handler[T]] = []
        with self._lock:
            stale = []
            for resolver in self._subscribers:
                handler = resolver()
                if handler is None:
                    stale.append(resolver)
                    continue
                handlers.append(handler)
            for resolver in stale:
                self._subscribers.remove(resolver)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:  # pragma: no cover - subscriber isolation
                LOGGER.exception("Subscriber for %s failed", self.name)
        return len(handlers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @staticmethod
    def _wrap(handler: Handler[T], *, weak: bool) -> Callable[[], Handler[T] | None]:
        if weak:
            try:
                return weakref.WeakMethod(handler)  # type: ignore[arg-type]
            except TypeError:
                pass
        return lambda: handler
