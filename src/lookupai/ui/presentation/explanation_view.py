"""Section-tree rendering for explanations and the result pane model.

Rendering is a pure function from a (possibly partial, possibly
ill-typed) explanation record to an immutable section tree. The pane
holds either raw text or one rendered tree; setting either replaces the
previous content wholesale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ..models.explanation_models import ExampleItem, ExplanationResult

__all__ = [
    "FALLBACK_TITLE",
    "SECTION_MEANING",
    "SECTION_IN_CONTEXT",
    "SECTION_USAGE",
    "SECTION_EXAMPLES",
    "RenderedHeader",
    "RenderedSection",
    "RenderedExplanation",
    "render_explanation",
    "ExplanationPane",
]

LOGGER = logging.getLogger(__name__)

FALLBACK_TITLE = "AI"
SECTION_MEANING = "Meaning"
SECTION_IN_CONTEXT = "In context"
SECTION_USAGE = "Usage"
SECTION_EXAMPLES = "Examples"


@dataclass(slots=True, frozen=True)
class RenderedHeader:
    title: str
    badge: str | None = None


@dataclass(slots=True, frozen=True)
class RenderedSection:
    """A labeled section; text sections carry ``body``, Examples carries ``examples``."""

    title: str
    body: str = ""
    examples: tuple[ExampleItem, ...] = ()


@dataclass(slots=True, frozen=True)
class RenderedExplanation:
    header: RenderedHeader
    sections: tuple[RenderedSection, ...] = ()

    def section(self, title: str) -> RenderedSection | None:
        for section in self.sections:
            if section.title == title:
                return section
        return None

    @property
    def section_titles(self) -> list[str]:
        return [section.title for section in self.sections]

    def to_text(self) -> str:
        """Plain-text layout used by console front ends."""
        lines = [self.header.title]
        if self.header.badge:
            lines.append(f"[{self.header.badge}]")
        for section in self.sections:
            lines.append("")
            lines.append(f"## {section.title}")
            if section.body:
                lines.append(section.body)
            for example in section.examples:
                if example.text:
                    lines.append(f"- {example.text}")
                if example.explain:
                    lines.append(f"  {example.explain}")
        return "\n".join(lines)


def render_explanation(parsed: Mapping[str, Any] | ExplanationResult) -> RenderedExplanation:
    """Build the section tree for ``parsed``.

    Order: header (title, else word, else a generic label), optional word
    badge, Meaning, In context, Usage, Examples. Empty or whitespace-only
    sections are omitted.
    """
    if isinstance(parsed, ExplanationResult):
        result = parsed
    else:
        result = ExplanationResult.from_payload(parsed)
    if result.ignored_fields:
        LOGGER.debug("Ignoring mistyped explanation fields: %s", result.ignored_fields)

    header = RenderedHeader(
        title=result.title or result.word or FALLBACK_TITLE,
        badge=result.word or None,
    )

    sections: list[RenderedSection] = []
    for title, body in (
        (SECTION_MEANING, result.meaning),
        (SECTION_IN_CONTEXT, result.meaning_in_context),
        (SECTION_USAGE, result.usage),
    ):
        if body.strip():
            sections.append(RenderedSection(title=title, body=body))

    if result.examples:
        sections.append(RenderedSection(title=SECTION_EXAMPLES, examples=tuple(result.examples)))

    return RenderedExplanation(header=header, sections=tuple(sections))


class ExplanationPane:
    """The single visible result pane of one display instance."""

    def __init__(self) -> None:
        self.visible = False
        self.button_visible = False
        self.status_text = ""
        self.content_text = ""
        self.rendered: RenderedExplanation | None = None

    @property
    def status_visible(self) -> bool:
        return bool(self.status_text)

    def set_visible(self, visible: bool) -> None:
        self.visible = visible

    def set_button_visible(self, visible: bool) -> None:
        self.button_visible = visible

    def set_status_text(self, value: str) -> None:
        self.status_text = value

    def set_content_text(self, value: str) -> None:
        self.rendered = None
        self.content_text = value

    def set_content_rendered(self, tree: RenderedExplanation) -> None:
        self.content_text = ""
        self.rendered = tree

    def reset(self) -> None:
        self.set_visible(False)
        self.set_button_visible(False)
        self.set_status_text("")
        self.set_content_text("")

    def display_text(self) -> str:
        if self.rendered is not None:
            return self.rendered.to_text()
        return self.content_text
