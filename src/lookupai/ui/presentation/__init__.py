"""Presentation helpers for the explanation pane."""

from .explanation_view import ExplanationPane, RenderedExplanation, render_explanation

__all__ = ["ExplanationPane", "RenderedExplanation", "render_explanation"]
