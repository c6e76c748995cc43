"""Debounced, rate-limited suggestion pipeline and display lifecycle."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from ..ai.prompts import build_expansion_prompt
from ..context.models import ContextSnapshot
from ..context.tracker import ContextTracker
from ..editor.applier import PatchApplier
from .events import EventChannel
from .models import (
    ClearReason,
    ExpansionRequest,
    OrchestratorState,
    PatchResult,
    PatchStatus,
    Suggestion,
    SuggestionCleared,
)
from .rate_limiter import RateLimiter
from .timers import CancellableTimer

if TYPE_CHECKING:
    from ..ai.suggestion_service import SuggestionSource

__all__ = ["OrchestratorConfig", "SuggestionOrchestrator"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]

_REQUEST_PHASES = (
    OrchestratorState.DEBOUNCING,
    OrchestratorState.RATE_CHECKING,
    OrchestratorState.REQUESTING,
)


@dataclass(slots=True)
class OrchestratorConfig:
    """Timing knobs for the suggestion pipeline."""

    debounce_seconds: float = 0.1
    auto_expire_seconds: float = 15.0
    grace_seconds: float = 1.0
    enabled: bool = True


class SuggestionOrchestrator:
    """Turns context changes into at most one displayed suggestion at a time.

    All state lives on the event loop that calls into the orchestrator; it is
    not thread-safe. Significant context changes restart a single debounce
    timer that, once it fires, checks the rate limiter and awaits the
    suggestion source. A newer significant change cancels whatever that timer
    is doing, including an in-flight request, so a late response for a
    superseded context is never shown.

    While a suggestion is displayed a second one is never requested. The
    displayed suggestion leaves the slot exactly once: applied, expanded,
    dismissed (ignored during the grace window) or auto-expired.
    """

    def __init__(
        self,
        source: "SuggestionSource",
        *,
        applier: PatchApplier | None = None,
        rate_limiter: RateLimiter | None = None,
        tracker: ContextTracker | None = None,
        config: OrchestratorConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._source = source
        self._applier = applier or PatchApplier()
        self._clock = clock or time.monotonic
        self._rate_limiter = rate_limiter or RateLimiter(clock=self._clock)
        self._tracker = tracker
        self._config = config or OrchestratorConfig()
        self._enabled = bool(self._config.enabled)

        self._request_state = OrchestratorState.IDLE
        self._display_state: Optional[OrchestratorState] = None
        self._last_published_state = OrchestratorState.IDLE
        self._request_pending = False
        self._generation = 0
        self._pending: Optional[CancellableTimer] = None
        self._expire_timer: Optional[CancellableTimer] = None
        self._current: Optional[Suggestion] = None
        self._shown_at: Optional[float] = None
        self._previous_snapshot: Optional[ContextSnapshot] = None

        self.suggestion_shown: EventChannel[Suggestion] = EventChannel("suggestion_shown")
        self.suggestion_cleared: EventChannel[SuggestionCleared] = EventChannel("suggestion_cleared")
        self.expansion_requested: EventChannel[ExpansionRequest] = EventChannel("expansion_requested")
        self.apply_finished: EventChannel[PatchResult] = EventChannel("apply_finished")
        self.state_changed: EventChannel[OrchestratorState] = EventChannel("state_changed")

    # ------------------------------------------------------------------
    # Public state
    # ------------------------------------------------------------------
    @property
    def state(self) -> OrchestratorState:
        return self._display_state or self._request_state

    @property
    def current_suggestion(self) -> Optional[Suggestion]:
        return self._current

    @property
    def is_request_pending(self) -> bool:
        return self._request_pending

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)
        if not self._enabled:
            self._cancel_pending()
            self._set_request_state(OrchestratorState.IDLE)

    # ------------------------------------------------------------------
    # Context intake
    # ------------------------------------------------------------------
    def notify_context_changed(self, snapshot: ContextSnapshot) -> bool:
        """Schedule a debounced request when ``snapshot`` is significant.

        Must be called from the owning event loop. Returns ``True`` when a new
        debounce was started.
        """

        previous = self._previous_snapshot
        self._previous_snapshot = snapshot
        if not self._enabled:
            LOGGER.debug("Suggestions disabled, skipping context change")
            return False
        if not snapshot.is_significant(previous):
            return False

        LOGGER.debug("Significant change - file: %s", snapshot.current_file_name)
        generation = self._cancel_pending()
        self._pending = CancellableTimer(
            self._config.debounce_seconds,
            lambda: self._on_debounce_fired(snapshot, generation),
            name="debounce",
        )
        self._set_request_state(OrchestratorState.DEBOUNCING)
        return True

    def request_now(self, snapshot: ContextSnapshot | None = None) -> bool:
        """Request a suggestion immediately, skipping debounce and rate limiting."""

        target = snapshot or self._current_snapshot()
        if target is None:
            return False
        if self._current is not None:
            LOGGER.debug("Suggestion already displayed; manual request ignored")
            return False
        generation = self._cancel_pending()
        self._pending = CancellableTimer(0.0, lambda: self._request(target, generation), name="manual-request")
        return True

    async def drain(self) -> None:
        """Wait until the pending debounce/request path settles."""

        timer = self._pending
        while timer is not None:
            await timer.wait()
            if self._pending is None or self._pending is timer:
                break
            timer = self._pending

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def apply(self) -> Optional[PatchResult]:
        """Apply the displayed suggestion's patch; ``None`` when nothing is displayed."""

        suggestion = self._current
        if suggestion is None or self._display_state is not OrchestratorState.DISPLAYING:
            LOGGER.debug("No suggestion to apply")
            return None

        self._set_display_state(OrchestratorState.APPLYING)
        self._cancel_expire()
        patch = suggestion.patch
        if patch is None:
            LOGGER.info("Suggestion %s has no patch to apply", suggestion.id)
            result = PatchResult(PatchStatus.NO_PATCH)
        else:
            LOGGER.debug("Applying patch to %s", patch.file_path)
            try:
                result = await asyncio.to_thread(self._applier.apply, patch)
            except Exception as exc:
                LOGGER.exception("Patch application raised")
                result = PatchResult.write_error(str(exc))

        if result.ok:
            LOGGER.info("Patch applied successfully")
        else:
            LOGGER.info("Patch failed: %s %s", result.status.value, result.detail or "")
        self.apply_finished.publish(result)
        self._acknowledge()
        self._clear(ClearReason.APPLIED)
        return result

    def expand(self) -> Optional[ExpansionRequest]:
        suggestion = self._current
        if suggestion is None or self._display_state is not OrchestratorState.DISPLAYING:
            return None

        self._set_display_state(OrchestratorState.EXPANDING)
        current_file = self._tracker.current_file if self._tracker is not None else None
        if current_file is None and self._previous_snapshot is not None:
            current_file = self._previous_snapshot.current_file
        patch = suggestion.patch
        request = ExpansionRequest(
            suggestion_id=suggestion.id,
            message=suggestion.message,
            prompt=build_expansion_prompt(suggestion, current_file=current_file),
            file_path=patch.file_path if patch is not None else current_file,
            snippet=patch.old_text if patch is not None and patch.old_text else None,
        )
        LOGGER.debug("Expanding suggestion %s", suggestion.id)
        self.expansion_requested.publish(request)
        self._acknowledge()
        self._clear(ClearReason.EXPANDED)
        return request

    def dismiss(self) -> bool:
        """Dismiss the displayed suggestion unless it is still inside the grace window."""

        if self._current is None or self._display_state is not OrchestratorState.DISPLAYING:
            return False
        age = self._clock() - (self._shown_at if self._shown_at is not None else self._clock())
        if age < self._config.grace_seconds:
            LOGGER.debug("Ignoring dismiss - suggestion too new (%.1fs)", age)
            return False

        self._set_display_state(OrchestratorState.DISMISSING)
        self._acknowledge()
        self._clear(ClearReason.DISMISSED)
        return True

    async def aclose(self) -> None:
        """Cancel every timer and empty the display slot."""

        self._cancel_pending()
        self._set_request_state(OrchestratorState.IDLE)
        if self._current is not None:
            self._clear(ClearReason.STOPPED)
        self._cancel_expire()
        LOGGER.debug("Orchestrator stopped")

    # ------------------------------------------------------------------
    # Request path
    # ------------------------------------------------------------------
    async def _on_debounce_fired(self, snapshot: ContextSnapshot, generation: int) -> None:
        if generation != self._generation:
            return
        self._set_request_state(OrchestratorState.RATE_CHECKING)

        if self._current is not None:
            LOGGER.debug("Suggestion already displayed; skipping request")
            self._finish(generation)
            return

        if not snapshot.is_critical and not self._rate_limiter.allow():
            LOGGER.debug(
                "Rate limited, skipping suggestion (wait %.1fs)",
                self._rate_limiter.time_until_next_allowed(),
            )
            self._finish(generation)
            return

        await self._request(snapshot, generation)

    async def _request(self, snapshot: ContextSnapshot, generation: int) -> None:
        self._set_request_state(OrchestratorState.REQUESTING)
        self._request_pending = True
        try:
            response = await self._source.fetch(snapshot)
        except asyncio.CancelledError:
            LOGGER.debug("In-flight suggestion request cancelled")
            raise
        except Exception as exc:
            LOGGER.warning("Suggestion service failed: %s", exc)
            response = None
        finally:
            if generation == self._generation:
                self._request_pending = False

        if generation != self._generation:
            return
        if response is None:
            LOGGER.debug("Suggestion service had nothing to say")
            self._finish(generation)
            return
        if self._current is not None:
            self._finish(generation)
            return

        suggestion = Suggestion.from_response(response)
        self._rate_limiter.record_emission()
        self._show(suggestion)
        self._finish(generation)

    def _finish(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._pending = None
        self._set_request_state(OrchestratorState.IDLE)

    def _cancel_pending(self) -> int:
        """Cancel the live pending request and return the next generation token."""

        self._generation += 1
        pending = self._pending
        self._pending = None
        if pending is not None:
            pending.cancel()
        self._request_pending = False
        return self._generation

    def _current_snapshot(self) -> ContextSnapshot | None:
        if self._tracker is not None:
            return self._tracker.snapshot()
        return self._previous_snapshot

    # ------------------------------------------------------------------
    # Display lifecycle
    # ------------------------------------------------------------------
    def _show(self, suggestion: Suggestion) -> None:
        self._cancel_expire()
        self._current = suggestion
        self._shown_at = self._clock()
        self._set_display_state(OrchestratorState.DISPLAYING)
        self._expire_timer = CancellableTimer(
            self._config.auto_expire_seconds,
            lambda: self._auto_expire(suggestion.id),
            name="auto-expire",
        )
        LOGGER.info("Showing suggestion: %s", suggestion.message)
        self.suggestion_shown.publish(suggestion)

    def _auto_expire(self, suggestion_id: str) -> None:
        current = self._current
        if current is None or current.id != suggestion_id:
            return
        if self._display_state is not OrchestratorState.DISPLAYING:
            return
        LOGGER.debug("Auto-expiring suggestion after %.1fs", self._config.auto_expire_seconds)
        self._set_display_state(OrchestratorState.AUTO_EXPIRING)
        self._clear(ClearReason.EXPIRED)

    def _clear(self, reason: ClearReason) -> None:
        suggestion = self._current
        self._cancel_expire()
        self._current = None
        self._shown_at = None
        self._set_display_state(None)
        if suggestion is not None:
            LOGGER.debug("Suggestion %s cleared (%s)", suggestion.id, reason.value)
            self.suggestion_cleared.publish(SuggestionCleared(suggestion=suggestion, reason=reason))

    def _cancel_expire(self) -> None:
        timer = self._expire_timer
        self._expire_timer = None
        if timer is not None:
            timer.cancel()

    def _acknowledge(self) -> None:
        if self._tracker is not None:
            self._tracker.reset_after_acknowledgement()

    # ------------------------------------------------------------------
    # State bookkeeping
    # ------------------------------------------------------------------
    def _set_request_state(self, state: OrchestratorState) -> None:
        self._request_state = state
        self._publish_state()

    def _set_display_state(self, state: Optional[OrchestratorState]) -> None:
        self._display_state = state
        self._publish_state()

    def _publish_state(self) -> None:
        state = self.state
        if state is self._last_published_state:
            return
        self._last_published_state = state
        self.state_changed.publish(state)
