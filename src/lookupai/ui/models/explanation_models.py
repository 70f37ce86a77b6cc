"""Explanation state models for the lookup pane.

These dataclasses and enums describe a lookup, the explanation derived
from the model's JSON payload, and the lifecycle states of one request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

SHIFT_MODIFIER = "shift"


class ExplainState(Enum):
    """State of the explanation pane for the current lookup.

    Values:
        IDLE: Nothing requested, pane hidden.
        SETTINGS_LOADING: Waiting for the settings snapshot.
        AUTO_REQUESTED: Auto mode; a request is about to start.
        AWAITING_MANUAL_CLICK: Manual mode; waiting for the explain button.
        REQUESTING: Request sent, no partial received yet.
        STREAMING: At least one partial received.
        RENDERED: Final text parsed and rendered as sections.
        RAW_FALLBACK: Final text shown as-is.
        FAILED: Request or settings fetch failed.
    """

    IDLE = "idle"
    SETTINGS_LOADING = "settings_loading"
    AUTO_REQUESTED = "auto_requested"
    AWAITING_MANUAL_CLICK = "awaiting_manual_click"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    RENDERED = "rendered"
    RAW_FALLBACK = "raw_fallback"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExplainState.RENDERED, ExplainState.RAW_FALLBACK, ExplainState.FAILED)


@dataclass(slots=True, frozen=True)
class LookupState:
    """Ambient lookup state supplied by the display layer."""

    modifier_keys: frozenset[str] = frozenset()
    sentence_text: str | None = None

    @classmethod
    def create(cls, modifier_keys: Iterable[str] = (), sentence_text: str | None = None) -> "LookupState":
        keys = frozenset(key for key in modifier_keys if isinstance(key, str))
        return cls(modifier_keys=keys, sentence_text=sentence_text)


@dataclass(slots=True, frozen=True)
class LookupEvent:
    """One dictionary content update; ``context`` may be empty."""

    word: str
    context: str = ""
    modifiers: frozenset[str] = frozenset()

    @classmethod
    def from_lookup(cls, query: Any, state: LookupState | None) -> "LookupEvent":
        word = query if isinstance(query, str) else ""
        if state is None:
            return cls(word=word)
        sentence = state.sentence_text
        context = sentence if isinstance(sentence, str) else ""
        return cls(word=word, context=context, modifiers=state.modifier_keys)


@dataclass(slots=True, frozen=True)
class ExampleItem:
    text: str = ""
    explain: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.explain


@dataclass(slots=True)
class ExplanationResult:
    """Explanation rebuilt from the latest successfully parsed JSON object.

    Every field is optional; values of the wrong type are treated as absent
    and their names recorded in ``ignored_fields``.
    """

    title: str = ""
    word: str = ""
    meaning: str = ""
    meaning_in_context: str = ""
    usage: str = ""
    examples: list[ExampleItem] = field(default_factory=list)
    ignored_fields: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExplanationResult":
        ignored: list[str] = []

        def text_field(key: str) -> str:
            value = payload.get(key)
            if isinstance(value, str):
                return value
            if value is not None:
                ignored.append(key)
            return ""

        raw_examples = payload.get("examples")
        examples: list[ExampleItem] = []
        if isinstance(raw_examples, list):
            for index, entry in enumerate(raw_examples):
                if not isinstance(entry, Mapping):
                    ignored.append(f"examples[{index}]")
                    continue
                text = entry.get("text")
                explain = entry.get("explain")
                item = ExampleItem(
                    text=text if isinstance(text, str) else "",
                    explain=explain if isinstance(explain, str) else "",
                )
                if not item.is_empty:
                    examples.append(item)
        elif raw_examples is not None:
            ignored.append("examples")

        return cls(
            title=text_field("title"),
            word=text_field("word"),
            meaning=text_field("meaning"),
            meaning_in_context=text_field("meaning_in_context"),
            usage=text_field("usage"),
            examples=examples,
            ignored_fields=ignored,
        )


__all__ = [
    "SHIFT_MODIFIER",
    "ExplainState",
    "LookupState",
    "LookupEvent",
    "ExampleItem",
    "ExplanationResult",
]
