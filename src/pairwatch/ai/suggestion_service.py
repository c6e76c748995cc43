"""Suggestion requests against an OpenAI-compatible chat model."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Protocol, TYPE_CHECKING

import httpx
from openai import OpenAIError

from ..context.models import ContextSnapshot
from ..orchestration.models import SuggestionResponse
from .prompts import build_messages

if TYPE_CHECKING:
    from .client import AIClient

__all__ = [
    "SuggestionService",
    "SuggestionServiceError",
    "SuggestionSource",
    "extract_json",
    "parse_suggestion_text",
]

LOGGER = logging.getLogger(__name__)
_FENCED_JSON_RE = re.compile(r"```json\s*(.*?)```", re.DOTALL)
_FENCED_ANY_RE = re.compile(r"```[^\n`]*\n?(.*?)```", re.DOTALL)


class SuggestionServiceError(RuntimeError):
    """Raised when the suggestion service could not be reached or answered garbage."""


class SuggestionSource(Protocol):
    """Anything that can turn a context snapshot into a suggestion response."""

    async def fetch(self, snapshot: ContextSnapshot) -> SuggestionResponse | None:  # pragma: no cover - protocol
        ...


def extract_json(text: str) -> str:
    """Pull a JSON object out of a model reply that may wrap it in prose or fences."""

    trimmed = text.strip()
    if trimmed.startswith("{"):
        return trimmed

    match = _FENCED_JSON_RE.search(trimmed)
    if match:
        return match.group(1).strip()

    match = _FENCED_ANY_RE.search(trimmed)
    if match:
        return match.group(1).strip()

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and end > start:
        return trimmed[start : end + 1]
    return trimmed


def parse_suggestion_text(text: str, *, current_file: str | None = None) -> SuggestionResponse | None:
    """Decode a raw model reply; ``None`` when there is nothing usable to show."""

    if not text or not text.strip():
        return None
    try:
        payload: Any = json.loads(extract_json(text))
    except json.JSONDecodeError:
        LOGGER.info("Failed to parse suggestion JSON: %s", text[:200])
        return None
    if not isinstance(payload, Mapping):
        LOGGER.info("Suggestion payload was %s, expected an object", type(payload).__name__)
        return None
    return SuggestionResponse.from_payload(payload, current_file=current_file)


class SuggestionService:
    """Builds the prompt for a snapshot and asks the model for a whisper."""

    def __init__(
        self,
        client: "AIClient",
        *,
        temperature: float = 0.2,
        max_tokens: int = 512,
        json_mode: bool = True,
        max_change_chars: int = 12_000,
    ) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._json_mode = json_mode
        self._max_change_chars = max_change_chars

    async def fetch(self, snapshot: ContextSnapshot) -> SuggestionResponse | None:
        messages = build_messages(snapshot, max_change_chars=self._max_change_chars)
        kwargs: dict[str, Any] = {"temperature": self._temperature, "max_tokens": self._max_tokens}
        if self._json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        LOGGER.debug("Requesting suggestion for %s", snapshot.current_file_name)
        try:
            text = await self._client.complete(messages, **kwargs)
        except (OpenAIError, httpx.HTTPError) as exc:
            raise SuggestionServiceError(f"Suggestion request failed: {exc}") from exc

        LOGGER.debug("Suggestion response: %s", text[:500])
        return parse_suggestion_text(text, current_file=snapshot.current_file)
