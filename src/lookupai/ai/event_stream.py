"""Incremental decoder for chat-completion event streams.

The wire format is newline-delimited ``data: <json>`` lines terminated by
``data: [DONE]``. Network chunks can split lines (and multi-byte UTF-8
sequences) anywhere, so bytes are decoded incrementally and any partial
trailing line is kept in the line buffer until its newline arrives.

The decoder takes plain bytes rather than wrapping ``httpx.Response.aiter_lines``
so chunk-split behaviour can be exercised without a transport.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import MalformedChunkError

__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "StreamState",
    "EventStreamDecoder",
    "extract_delta_content",
    "extract_message_content",
]

LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(slots=True)
class StreamState:
    """Mutable state for one streaming call; discarded once the call ends."""

    accumulated_text: str = ""
    line_buffer: str = ""
    finished: bool = False


class EventStreamDecoder:
    """Turns raw response bytes into a growing accumulated completion text.

    ``feed`` returns the accumulated total after each non-empty delta found in
    the chunk, in order. Once the sentinel is seen ``finished`` is set and all
    further input is ignored.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.state = StreamState()
        self.malformed: list[MalformedChunkError] = []

    @property
    def finished(self) -> bool:
        return self.state.finished

    @property
    def text(self) -> str:
        return self.state.accumulated_text

    def feed(self, chunk: bytes) -> list[str]:
        if self.state.finished or not chunk:
            return []
        self.state.line_buffer += self._decoder.decode(chunk)
        return self._drain_lines()

    def finish(self) -> str:
        """Flush the decoder at end of stream and return the final text.

        A trailing ``data:`` line without its newline is consumed like a
        complete line; if it yields no delta it stays in the line buffer.
        When no delta was ever accumulated, the raw trailing buffer is
        returned instead.
        """
        if self.state.finished:
            return self.state.accumulated_text
        self.state.line_buffer += self._decoder.decode(b"", final=True)
        self._drain_lines()
        if not self.state.finished:
            trailing = self.state.line_buffer.rstrip()
            if trailing.startswith(DATA_PREFIX):
                self.state.line_buffer = ""
                if not self._consume_line(trailing, []) and not self.state.finished:
                    self.state.line_buffer = trailing
        self.state.finished = True
        if self.state.accumulated_text:
            return self.state.accumulated_text
        return self.state.line_buffer.strip()

    def _drain_lines(self) -> list[str]:
        updates: list[str] = []
        while not self.state.finished:
            line_end = self.state.line_buffer.find("\n")
            if line_end < 0:
                break
            line = self.state.line_buffer[:line_end].rstrip()
            self.state.line_buffer = self.state.line_buffer[line_end + 1:]
            self._consume_line(line, updates)
        return updates

    def _consume_line(self, line: str, updates: list[str]) -> bool:
        """Apply one complete line; True when it added a delta."""
        # Blank lines, comments and other SSE fields are framing only.
        if not line.startswith(DATA_PREFIX):
            return False
        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self.state.finished = True
            return False
        try:
            payload = self._parse_payload(data)
        except MalformedChunkError as exc:
            LOGGER.debug("%s (line=%r)", exc.message, exc.details.get("line"))
            self.malformed.append(exc)
            return False
        delta = extract_delta_content(payload)
        if not delta:
            return False
        self.state.accumulated_text += delta
        updates.append(self.state.accumulated_text)
        return True

    @staticmethod
    def _parse_payload(data: str) -> Any:
        try:
            return json.loads(data)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise MalformedChunkError(data, str(exc)) from exc


def _first_choice(payload: Any) -> Mapping[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, Sequence) or isinstance(choices, (str, bytes)) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, Mapping) else None


def _content_of(container: Any) -> str | None:
    if not isinstance(container, Mapping):
        return None
    content = container.get("content")
    return content if isinstance(content, str) else None


def extract_delta_content(payload: Any) -> str:
    """Return ``choices[0].delta.content``, else ``choices[0].message.content``, else ''."""
    choice = _first_choice(payload)
    if choice is None:
        return ""
    delta = _content_of(choice.get("delta"))
    if delta is not None:
        return delta
    message = _content_of(choice.get("message"))
    if message is not None:
        return message
    return ""


def extract_message_content(payload: Any) -> str | None:
    """Return ``choices[0].message.content`` of a non-streaming body, if present."""
    choice = _first_choice(payload)
    if choice is None:
        return None
    return _content_of(choice.get("message"))
