"""Async streaming client for OpenAI-compatible chat-completion endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping

import httpx
from openai.types.chat import ChatCompletionUserMessageParam
from openai.types.chat.completion_create_params import ResponseFormat

from .errors import ConfigMissingError, HttpStatusError, NetworkError, RequestTimeoutError
from .event_stream import EventStreamDecoder, extract_message_content

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "ERROR_EXCERPT_CHARS",
    "CompletionRequest",
    "OnPartial",
    "StreamingCompletionClient",
]

LOGGER = logging.getLogger(__name__)
DEFAULT_TIMEOUT_SECONDS = 20.0
ERROR_EXCERPT_CHARS = 500

OnPartial = Callable[[str], None]


@dataclass(slots=True)
class CompletionRequest:
    """Inputs for one completion call."""

    api_url: str
    api_key: str
    model: str
    prompt: str


class StreamingCompletionClient:
    """Performs the HTTP call and turns the response into incremental text.

    ``on_partial`` receives the accumulated text, possibly many times per
    call. Callers are responsible for dropping updates that belong to a
    superseded lookup; this client never cancels itself on their behalf.
    The only hard abort is the wall-clock ``timeout``.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        error_excerpt_chars: int = ERROR_EXCERPT_CHARS,
        debug_logging: bool = False,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = float(timeout)
        self._excerpt_chars = max(0, int(error_excerpt_chars))
        self._debug_logging = debug_logging

    @property
    def timeout(self) -> float:
        return self._timeout

    async def send(self, request: CompletionRequest, on_partial: OnPartial) -> str:
        """Send ``request`` and return the final completion text."""

        api_url = request.api_url.strip() if isinstance(request.api_url, str) else ""
        if not api_url:
            raise ConfigMissingError()

        payload = self._build_chat_payload(request.prompt, request.model)
        headers = self._build_headers(request.api_key)
        LOGGER.debug(
            "Starting streamed completion via %s (model=%s, prompt_chars=%d)",
            api_url,
            payload.get("model", "<default>"),
            len(request.prompt or ""),
        )
        if self._debug_logging:
            self._log_prompt_payload(payload)

        try:
            return await asyncio.wait_for(
                self._post(api_url, headers, payload, on_partial),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            LOGGER.warning("Completion request to %s timed out after %.1fs", api_url, self._timeout)
            raise RequestTimeoutError(self._timeout) from exc
        except httpx.TimeoutException as exc:
            LOGGER.warning("Completion transport timed out for %s: %s", api_url, exc)
            raise RequestTimeoutError(self._timeout) from exc
        except httpx.TransportError as exc:
            LOGGER.warning("Completion transport failed for %s: %s", api_url, exc)
            raise NetworkError(str(exc) or type(exc).__name__) from exc

    async def _post(
        self,
        url: str,
        headers: Mapping[str, str],
        payload: Mapping[str, Any],
        on_partial: OnPartial,
    ) -> str:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        async with self._http().stream("POST", url, headers=dict(headers), content=body) as response:
            if not response.is_success:
                await response.aread()
                excerpt = response.text[: self._excerpt_chars]
                raise HttpStatusError(response.status_code, excerpt)

            if self._is_single_shot(response):
                return await self._read_single_shot(response, on_partial)

            decoder = EventStreamDecoder()
            async for chunk in response.aiter_bytes():
                for partial in decoder.feed(chunk):
                    on_partial(partial)
                if decoder.finished:
                    LOGGER.debug("Stream sentinel received after %d chars", len(decoder.text))
                    on_partial(decoder.text)
                    return decoder.text

            final_text = decoder.finish()
            if decoder.malformed:
                LOGGER.debug("Skipped %d malformed stream line(s)", len(decoder.malformed))
            on_partial(final_text)
            return final_text

    async def _read_single_shot(self, response: httpx.Response, on_partial: OnPartial) -> str:
        await response.aread()
        raw = response.text
        try:
            content = extract_message_content(json.loads(raw))
        except (json.JSONDecodeError, RecursionError):
            content = None
        text = content if content is not None else raw
        LOGGER.debug("Server answered without streaming (%d chars)", len(text))
        on_partial(text)
        return text

    @staticmethod
    def _is_single_shot(response: httpx.Response) -> bool:
        content_type = response.headers.get("content-type", "").lower()
        return content_type.startswith("application/json")

    @staticmethod
    def _build_chat_payload(prompt: str, model: str | None) -> Dict[str, Any]:
        message: ChatCompletionUserMessageParam = {"role": "user", "content": prompt}
        response_format: ResponseFormat = {"type": "json_object"}
        payload: Dict[str, Any] = {}
        if isinstance(model, str) and model:
            payload["model"] = model
        payload["messages"] = [message]
        payload["stream"] = True
        payload["response_format"] = response_format
        return payload

    @staticmethod
    def _build_headers(api_key: str | None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if isinstance(api_key, str) and api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""

        if self._client is None or not self._owns_client:
            return
        client, self._client = self._client, None
        await client.aclose()
