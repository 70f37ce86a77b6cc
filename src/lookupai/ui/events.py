"""Event bus and explanation lifecycle events.

The explanation session publishes these so front ends (console, GUI,
tests) can follow a lookup without reaching into the session itself.
Events are only published on behalf of the current request token.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from .models.explanation_models import ExplanationResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events."""


# Streaming events fire once per chunk; publishing them is not logged.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Explanation Events
# =============================================================================


@dataclass(slots=True)
class ExplanationRequested(Event):
    """Emitted when a completion request starts.

    Attributes:
        token: Request token owning the pane.
        word: The looked-up word.
    """

    token: int
    word: str


@dataclass(slots=True)
class ExplanationPartial(Event):
    """Emitted for each accumulated partial text of the current request."""

    token: int
    text: str


_QUIET_EVENT_TYPES.add(ExplanationPartial)


@dataclass(slots=True)
class ExplanationRendered(Event):
    """Emitted when the final text parsed into a structured explanation."""

    token: int
    result: "ExplanationResult"


@dataclass(slots=True)
class ExplanationRawFallback(Event):
    """Emitted when the final text could not be parsed and is shown as-is."""

    token: int
    text: str


@dataclass(slots=True)
class ExplanationFailed(Event):
    """Emitted when settings or the request failed.

    Attributes:
        token: Request token the failure belongs to.
        error_code: Machine-readable code from :mod:`lookupai.ai.errors`.
        message: Detail text shown in the pane.
    """

    token: int
    error_code: str
    message: str


@dataclass(slots=True)
class ExplanationCleared(Event):
    """Emitted when the pane content was cleared."""


class EventBus(Generic[E]):
    """A typed publish-subscribe bus.

    Bound-method handlers are held weakly so a discarded front end does not
    keep receiving events. Not thread-safe; use from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for ``type(event)`` in subscription order.

        A raising handler is logged and does not stop the others.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if event_type not in _QUIET_EVENT_TYPES:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers or ()))
        if not handlers:
            return

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        for handler_ref in dead:
            handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ExplanationRequested",
    "ExplanationPartial",
    "ExplanationRendered",
    "ExplanationRawFallback",
    "ExplanationFailed",
    "ExplanationCleared",
]
