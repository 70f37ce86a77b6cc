"""Classifies lookups that warrant an AI explanation."""

from __future__ import annotations

from ..models.explanation_models import SHIFT_MODIFIER, LookupEvent


def is_ai_eligible(event: LookupEvent | None) -> bool:
    """True iff the lookup was made with the shift key held."""
    if event is None:
        return False
    return SHIFT_MODIFIER in event.modifiers


__all__ = ["is_ai_eligible"]
