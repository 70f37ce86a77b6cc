"""Domain layer for the explanation pane.

Domain Managers:
    - RequestLifecycleTracker: Request token issuing and staleness checks
    - ExplanationSession: Explanation state machine for one display

Nothing in this package depends on a concrete UI toolkit.
"""

from __future__ import annotations

from .explanation_session import ExplanationSession
from .request_tracker import RequestLifecycleTracker
from .trigger_gate import is_ai_eligible

__all__ = ["ExplanationSession", "RequestLifecycleTracker", "is_ai_eligible"]
