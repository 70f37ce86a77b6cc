"""Shared test stubs for settings providers and completion clients.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Callable, Sequence

from lookupai.ai.client import CompletionRequest, OnPartial
from lookupai.services.settings import AISettings

_WORD_RE = re.compile(r"^word: (.*)$", re.MULTILINE)


def auto_settings(**overrides: str) -> AISettings:
    values = {"mode": "auto", "api_url": "http://local/v1/chat/completions", "api_key": "sk-test", "model": "m"}
    values.update(overrides)
    return AISettings(**values)


def word_from_prompt(prompt: str) -> str:
    match = _WORD_RE.search(prompt)
    return match.group(1) if match else ""


def sse(*chunks: dict | str) -> bytes:
    """Build an event-stream body; dicts become ``data:`` JSON lines."""
    lines = []
    for chunk in chunks:
        data = chunk if isinstance(chunk, str) else json.dumps(chunk, ensure_ascii=False)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode("utf-8")


def delta(content: str) -> dict:
    return {"choices": [{"delta": {"content": content}}]}


class FakeSettingsProvider:
    """Settings provider returning a fixed snapshot or raising ``error``."""

    def __init__(self, settings: AISettings | None = None, *, error: Exception | None = None) -> None:
        self.settings = settings or auto_settings()
        self.error = error
        self.calls = 0

    async def get_settings(self) -> AISettings:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.settings


class GatedSettingsProvider:
    """Settings provider whose calls block until released one by one."""

    def __init__(self, settings: AISettings | None = None) -> None:
        self.settings = settings or auto_settings()
        self.gates: list[asyncio.Event] = []

    async def get_settings(self) -> AISettings:
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return self.settings


class ScriptedClient:
    """Completion client that replays ``partials`` then returns ``final``."""

    def __init__(
        self,
        partials: Sequence[str] = (),
        final: str = "",
        *,
        error: Exception | None = None,
        after_partial: Callable[[str], None] | None = None,
    ) -> None:
        self.partials = list(partials)
        self.final = final
        self.error = error
        self.after_partial = after_partial
        self.requests: list[CompletionRequest] = []

    async def send(self, request: CompletionRequest, on_partial: OnPartial) -> str:
        self.requests.append(request)
        for partial in self.partials:
            on_partial(partial)
            if self.after_partial is not None:
                self.after_partial(partial)
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.final


class GatedClient:
    """Completion client whose calls stream a partial, then wait for release.

    Each call is keyed by the word found in its prompt; the final text is a
    JSON explanation titled with that word.
    """

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}
        self.words: list[str] = []

    async def send(self, request: CompletionRequest, on_partial: OnPartial) -> str:
        word = word_from_prompt(request.prompt)
        gate = asyncio.Event()
        self.gates[word] = gate
        self.words.append(word)
        on_partial('{"title": "' + word)
        await gate.wait()
        final = json.dumps({"title": word, "word": word, "meaning": f"meaning of {word}"})
        on_partial(final)
        return final


async def wait_until(predicate: Callable[[], bool], *, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
