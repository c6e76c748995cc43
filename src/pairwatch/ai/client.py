"""OpenAI-compatible chat client tuned for short, single-reply whisper requests."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

import httpx
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from openai.types.chat import ChatCompletionMessageParam
from openai.types.chat.completion_create_params import ResponseFormat
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

__all__ = ["AIClient", "ClientSettings", "TRANSIENT_ERRORS"]

LOGGER = logging.getLogger(__name__)

# Failures worth another attempt; 4xx responses other than 429 are final.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
    httpx.TransportError,
)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 10.0
    max_retries: int = 2
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 4.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True)
class _ReplyBuffer:
    """Text gathered from one streamed attempt."""

    deltas: List[str] = field(default_factory=list)
    final: str | None = None
    refusal: str | None = None

    def feed(self, event: Any) -> None:
        kind = getattr(event, "type", None)
        if kind == "content.delta":
            delta = getattr(event, "delta", None)
            if delta:
                self.deltas.append(str(delta))
        elif kind == "content.done":
            content = getattr(event, "content", None)
            if content:
                self.final = str(content)
        elif kind == "refusal.done":
            self.refusal = getattr(event, "refusal", None) or "refused"

    def text(self) -> str:
        if self.refusal is not None:
            return ""
        if self.final is not None:
            return self.final.strip()
        return "".join(self.deltas).strip()


class AIClient:
    """Streams one chat completion per call and returns the joined reply.

    Every retried attempt starts from an empty buffer, so a stream that breaks
    halfway never leaks its partial text into the final reply.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        response_format: ResponseFormat | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str:
        """Return the model's full reply text for ``messages``."""

        payload = self._build_payload(
            self._message_list(messages),
            response_format=response_format,
            temperature=temperature,
            max_tokens=max_tokens,
            metadata=metadata,
        )
        LOGGER.debug("Chat completion via %s with %s message(s)", self._settings.model, len(payload["messages"]))
        if self._settings.debug_logging:
            self._log_payload(payload)

        reply = ""
        async for attempt in self._retrying():
            with attempt:
                reply = await self._read_stream(payload)
        return reply

    async def aclose(self) -> None:
        """Close the underlying OpenAI client."""

        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    async def _read_stream(self, payload: Mapping[str, Any]) -> str:
        buffer = _ReplyBuffer()
        async with self._client.chat.completions.stream(**payload) as stream:
            async for event in stream:
                buffer.feed(event)
        if buffer.refusal is not None:
            LOGGER.info("Model refused the request: %s", buffer.refusal)
        return buffer.text()

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=settings.api_key or None,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=dict(settings.default_headers) if settings.default_headers else None,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
        )

    @staticmethod
    def _message_list(messages: Iterable[Mapping[str, Any]]) -> List[ChatCompletionMessageParam]:
        normalized: List[ChatCompletionMessageParam] = [dict(message) for message in messages]  # type: ignore[misc]
        if not normalized:
            raise ValueError("At least one message is required to start a chat")
        return normalized

    def _build_payload(
        self,
        messages: List[ChatCompletionMessageParam],
        *,
        response_format: ResponseFormat | None,
        temperature: float | None,
        max_tokens: int | None,
        metadata: Mapping[str, str] | None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self._settings.model, "messages": messages}
        merged = {**(self._settings.metadata or {}), **(metadata or {})}
        optional = {
            "metadata": merged or None,
            "response_format": response_format,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload

    def _log_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            LOGGER.debug("AI prompt payload:\n%s", json.dumps(payload, ensure_ascii=False, indent=2))
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
