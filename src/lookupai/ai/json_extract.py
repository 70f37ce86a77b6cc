"""Best-effort JSON extraction from a growing completion buffer."""

from __future__ import annotations

import json
from typing import Any

__all__ = ["looks_like_json_object", "try_parse_json_object"]


def looks_like_json_object(text: str) -> bool:
    """Cheap structural pre-check run before a full parse."""
    if not text or not isinstance(text, str):
        return False
    trimmed = text.strip()
    return trimmed.startswith("{") and trimmed.endswith("}")


def try_parse_json_object(text: str) -> dict[str, Any] | None:
    """Return the parsed object when ``text`` is a complete JSON object, else None.

    Called after every partial and after the final text; incomplete or
    malformed input is expected and never raises.
    """
    if not looks_like_json_object(text):
        return None
    try:
        result = json.loads(text.strip())
    except (json.JSONDecodeError, RecursionError):
        return None
    if isinstance(result, dict):
        return result
    return None
