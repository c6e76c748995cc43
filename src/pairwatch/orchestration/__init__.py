"""Suggestion pipeline: timers, rate limiting, events and the orchestrator."""

from importlib import import_module
from typing import Any

from .events import EventChannel
from .models import (
    ClearReason,
    ExpansionRequest,
    OrchestratorState,
    Patch,
    PatchResult,
    PatchStatus,
    Suggestion,
    SuggestionCleared,
    SuggestionResponse,
)
from .rate_limiter import RateLimiter
from .timers import CancellableTimer

__all__ = [
    "CancellableTimer",
    "ClearReason",
    "EventChannel",
    "ExpansionRequest",
    "OrchestratorConfig",
    "OrchestratorState",
    "Patch",
    "PatchResult",
    "PatchStatus",
    "RateLimiter",
    "Suggestion",
    "SuggestionCleared",
    "SuggestionOrchestrator",
    "SuggestionResponse",
]

_LAZY = {"OrchestratorConfig", "SuggestionOrchestrator"}


def __getattr__(name: str) -> Any:
    if name in _LAZY:
        module = import_module(f"{__name__}.orchestrator")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
