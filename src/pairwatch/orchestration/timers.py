"""Cancellable delayed continuations running on the owner event loop."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

__all__ = ["CancellableTimer"]

LOGGER = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[Awaitable[None], None]]


class CancellableTimer:
    """Runs ``callback`` after ``delay`` seconds unless cancelled first.

    The timer owns a single asyncio task. Cancelling before the delay elapses
    discards the continuation without side effects; cancelling while an async
    callback is still running cancels that callback as well. A callback may
    cancel its own timer (for example while clearing state) without
    interrupting itself.
    """

    def __init__(
        self,
        delay: float,
        callback: TimerCallback,
        *,
        name: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._name = name or "timer"
        self._fired = False
        active_loop = loop or asyncio.get_running_loop()
        self._task: Optional[asyncio.Task[None]] = active_loop.create_task(self._run(), name=self._name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def fired(self) -> bool:
        """``True`` once the delay elapsed and the callback started."""

        return self._fired

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    def cancel(self) -> bool:
        task = self._task
        if task is None or task.done():
            return False
        if task is _current_task():
            return False
        task.cancel()
        LOGGER.debug("Cancelled %s (fired=%s)", self._name, self._fired)
        return True

    async def wait(self) -> None:
        """Wait until the timer finished, was cancelled, or failed."""

        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.shield(self._task)

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        self._fired = True
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Timer %s callback failed", self._name)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
