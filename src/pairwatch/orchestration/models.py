"""Suggestion, patch and lifecycle types shared by the orchestrator and applier."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "ClearReason",
    "ExpansionRequest",
    "OrchestratorState",
    "Patch",
    "PatchResult",
    "PatchStatus",
    "Suggestion",
    "SuggestionCleared",
    "SuggestionResponse",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class Patch:
    """Proposed replacement of ``old_text`` with ``new_text`` inside ``file_path``."""

    file_path: str
    old_text: str
    new_text: str


@dataclass(slots=True, frozen=True)
class SuggestionResponse:
    """Parsed, non-empty answer from the suggestion service."""

    message: str
    can_apply: bool = False
    patch: Optional[Patch] = None

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        current_file: str | None = None,
    ) -> "SuggestionResponse | None":
        """Build a response from the ``{"whisper", "can_apply", "patch"}`` payload.

        Returns ``None`` when the service had nothing to say. ``can_apply`` is
        only honoured when a complete patch is present; the patch target falls
        back to ``current_file`` when the service omits it.
        """

        message = payload.get("whisper")
        if not isinstance(message, str) or not message.strip():
            return None

        patch: Patch | None = None
        patch_payload = payload.get("patch")
        if isinstance(patch_payload, Mapping):
            file_path = patch_payload.get("file")
            if not isinstance(file_path, str) or not file_path:
                file_path = current_file
            old_text = patch_payload.get("old")
            new_text = patch_payload.get("new")
            if file_path and isinstance(old_text, str) and isinstance(new_text, str):
                patch = Patch(file_path=file_path, old_text=old_text, new_text=new_text)

        can_apply = payload.get("can_apply") is True
        return cls(message=message.strip(), can_apply=can_apply and patch is not None, patch=patch)


@dataclass(slots=True, frozen=True)
class Suggestion:
    """A displayed observation ("whisper") with an optional patch."""

    message: str
    can_apply: bool = False
    patch: Optional[Patch] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_response(cls, response: SuggestionResponse) -> "Suggestion":
        return cls(
            message=response.message,
            can_apply=response.can_apply and response.patch is not None,
            patch=response.patch,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "can_apply": self.can_apply,
            "created_at": self.created_at.isoformat(),
        }
        if self.patch is not None:
            payload["patch"] = {
                "file": self.patch.file_path,
                "old": self.patch.old_text,
                "new": self.patch.new_text,
            }
        return payload


class PatchStatus(Enum):
    SUCCESS = "success"
    FILE_NOT_FOUND = "file_not_found"
    CODE_NOT_FOUND = "code_not_found"
    WRITE_ERROR = "write_error"
    NO_PATCH = "no_patch"


@dataclass(slots=True, frozen=True)
class PatchResult:
    """Outcome of applying a :class:`Patch`."""

    status: PatchStatus
    detail: str | None = None
    source: str | None = None
    replacements: int = 0

    @property
    def ok(self) -> bool:
        return self.status is PatchStatus.SUCCESS

    @classmethod
    def success(cls, *, source: str, replacements: int) -> "PatchResult":
        return cls(PatchStatus.SUCCESS, source=source, replacements=replacements)

    @classmethod
    def file_not_found(cls, detail: str | None = None) -> "PatchResult":
        return cls(PatchStatus.FILE_NOT_FOUND, detail=detail)

    @classmethod
    def code_not_found(cls, *, source: str | None = None) -> "PatchResult":
        return cls(PatchStatus.CODE_NOT_FOUND, source=source)

    @classmethod
    def write_error(cls, detail: str, *, source: str | None = None) -> "PatchResult":
        return cls(PatchStatus.WRITE_ERROR, detail=detail, source=source)


class OrchestratorState(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RATE_CHECKING = "rate_checking"
    REQUESTING = "requesting"
    DISPLAYING = "displaying"
    APPLYING = "applying"
    EXPANDING = "expanding"
    DISMISSING = "dismissing"
    AUTO_EXPIRING = "auto_expiring"


class ClearReason(Enum):
    """Why the current suggestion slot was emptied."""

    APPLIED = "applied"
    EXPANDED = "expanded"
    DISMISSED = "dismissed"
    EXPIRED = "expired"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class ExpansionRequest:
    """Hand-off for an external consumer that wants to explain a suggestion further."""

    suggestion_id: str
    message: str
    prompt: str
    file_path: str | None = None
    snippet: str | None = None


@dataclass(slots=True, frozen=True)
class SuggestionCleared:
    """Published when a suggestion leaves the display slot."""

    suggestion: Suggestion
    reason: ClearReason
