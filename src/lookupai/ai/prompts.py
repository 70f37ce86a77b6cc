"""Prompt template for word explanations.

The model is asked for a single JSON object with a pinned schema so the
result pane can render it section by section while it streams in.
"""

from __future__ import annotations

__all__ = ["EXPLANATION_SCHEMA_FIELDS", "build_explain_prompt"]

EXPLANATION_SCHEMA_FIELDS: tuple[str, ...] = (
    "title",
    "word",
    "meaning",
    "meaning_in_context",
    "usage",
    "examples",
)


def build_explain_prompt(style: str | None, word: str, context: str | None) -> str:
    """Compile the instruction block, optional style block and lookup input.

    ``word`` and ``context`` are appended verbatim; newlines are not escaped.
    Never raises: non-string inputs are treated as empty.
    """
    style_text = style.strip() if isinstance(style, str) else ""
    style_block = f"\n\nStyle requirements:\n{style_text}\n" if style_text else ""
    word_text = word if isinstance(word, str) else ""
    context_text = context if isinstance(context, str) else ""

    return (
        f"{_instruction_section()}"
        f"{style_block}"
        "\nInput:\n"
        f"word: {word_text}\n"
        f"context: {context_text}\n"
    )


def _instruction_section() -> str:
    return """You are a language-learning assistant.
Return a single JSON object and NOTHING else (no markdown, no code fences, no comments).
The JSON must be valid, UTF-8, and use double quotes.
Output schema:
{
  "title": string,
  "word": string,
  "meaning": string,
  "meaning_in_context": string,
  "usage": string,
  "examples": [{"text": string, "explain": string}]
}
"""
