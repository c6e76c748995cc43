"""Shared test helpers and stub classes.

Import from here instead of duplicating these stubs in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, List, Optional

from pairwatch.context.models import ContextSnapshot
from pairwatch.orchestration.models import Patch, SuggestionResponse


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubSource:
    """Suggestion source returning queued responses and recording each snapshot.

    Queued exceptions are raised instead of returned. With ``delay`` set, the
    fetch sleeps first so tests can cancel it mid-flight.
    """

    def __init__(self, responses: Iterable[Any] = (), *, delay: float = 0.0) -> None:
        self._responses: List[Any] = list(responses)
        self.delay = delay
        self.calls: List[ContextSnapshot] = []
        self.cancelled = 0

    def queue(self, response: Any) -> None:
        self._responses.append(response)

    async def fetch(self, snapshot: ContextSnapshot) -> Optional[SuggestionResponse]:
        self.calls.append(snapshot)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if not self._responses:
            return None
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def make_response(
    message: str = "hmm, looks like a typo",
    *,
    file_path: str | None = None,
    old: str = "retrun x",
    new: str = "return x",
) -> SuggestionResponse:
    patch = Patch(file_path=file_path, old_text=old, new_text=new) if file_path else None
    return SuggestionResponse(message=message, can_apply=patch is not None, patch=patch)


def make_snapshot(
    path: str | None = "/work/app.py",
    *,
    change: str | None = None,
    build_status: Any = None,
) -> ContextSnapshot:
    return ContextSnapshot(current_file=path, change_description=change, build_status=build_status)
