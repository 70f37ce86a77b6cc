"""Request identity tracking for overlapping lookups."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)

RequestToken = int


class RequestLifecycleTracker:
    """Issues strictly increasing request tokens.

    Exactly one token is current at a time. Every asynchronous continuation
    checks :meth:`is_current` right before each visible mutation; once a newer
    token exists the older one is stale forever. Issuing a token never
    cancels in-flight work.
    """

    __slots__ = ("_counter",)

    def __init__(self) -> None:
        self._counter: RequestToken = 0

    @property
    def current(self) -> RequestToken:
        return self._counter

    def next(self) -> RequestToken:
        self._counter += 1
        return self._counter

    def invalidate(self) -> None:
        """Make every issued token stale without starting a new request."""
        self._counter += 1

    def is_current(self, token: RequestToken) -> bool:
        current = token == self._counter
        if not current:
            LOGGER.debug("Discarding stale continuation (token=%d, current=%d)", token, self._counter)
        return current


__all__ = ["RequestToken", "RequestLifecycleTracker"]
