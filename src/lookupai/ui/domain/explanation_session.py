"""Explanation session domain service.

One session exists per display instance. It owns the request tracker,
the cached settings snapshot, the pending lookup input and the result
pane, and drives the explanation state machine::

    idle -> settings_loading -> {auto_requested | awaiting_manual_click}
         -> requesting -> streaming -> {rendered | raw_fallback | failed}

Overlapping lookups are never serialized or cancelled. Every continuation
re-checks its request token before touching the pane, the settings cache,
the state or the event bus, so only the newest lookup is ever visible.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ...ai.client import CompletionRequest, OnPartial
from ...ai.errors import (
    ConfigMissingError,
    ErrorCode,
    ExplainError,
    SettingsUnavailableError,
    StructureMismatchError,
)
from ...ai.json_extract import try_parse_json_object
from ...ai.prompts import build_explain_prompt
from ...services.settings import AISettings, SettingsProvider
from ..events import (
    EventBus,
    ExplanationCleared,
    ExplanationFailed,
    ExplanationPartial,
    ExplanationRawFallback,
    ExplanationRendered,
    ExplanationRequested,
)
from ..models.explanation_models import ExplainState, ExplanationResult, LookupEvent, LookupState
from ..presentation.explanation_view import ExplanationPane, render_explanation
from .request_tracker import RequestLifecycleTracker, RequestToken
from .trigger_gate import is_ai_eligible

LOGGER = logging.getLogger(__name__)

STATUS_THINKING = "AI is thinking…"
STATUS_CLICK_TO_EXPLAIN = "Click AI to explain."
STATUS_REQUEST_FAILED = "AI request failed."


class CompletionClient(Protocol):
    async def send(self, request: CompletionRequest, on_partial: OnPartial) -> str:  # pragma: no cover
        ...


class ExplanationSession:
    """Runs on-demand explanations for lookups shown in one display.

    Args:
        settings_provider: Supplies the settings snapshot per lookup.
        client: Streams completions; usually a
            :class:`~lookupai.ai.client.StreamingCompletionClient`.
        pane: The result pane to write into. A fresh one is created if omitted.
        event_bus: Bus for lifecycle events. A private one is created if omitted.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        client: CompletionClient,
        *,
        pane: ExplanationPane | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._client = client
        self._pane = pane or ExplanationPane()
        self._bus = event_bus or EventBus()
        self._tracker = RequestLifecycleTracker()
        self._settings: AISettings | None = None
        self._pending: LookupEvent | None = None
        self._last_event: LookupEvent | None = None
        self._state = ExplainState.IDLE

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def pane(self) -> ExplanationPane:
        return self._pane

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def tracker(self) -> RequestLifecycleTracker:
        return self._tracker

    @property
    def state(self) -> ExplainState:
        return self._state

    @property
    def settings(self) -> AISettings | None:
        """The settings snapshot cached for the current lookup, if any."""
        return self._settings

    @property
    def pending_input(self) -> LookupEvent | None:
        return self._pending

    # ------------------------------------------------------------------
    # Display event handlers
    # ------------------------------------------------------------------

    def on_content_clear(self) -> None:
        """Invalidate the current request unconditionally and empty the pane."""
        self._tracker.invalidate()
        self._pending = None
        self._settings = None
        self._last_event = None
        self._pane.reset()
        self._state = ExplainState.IDLE
        self._bus.publish(ExplanationCleared())

    async def on_content_update(self, query: Any, lookup_state: LookupState | None = None) -> None:
        """Handle a dictionary content update for ``query``."""
        event = LookupEvent.from_lookup(query, lookup_state)
        token = self._tracker.next()
        self._pending = None
        self._last_event = event

        if not is_ai_eligible(event):
            self._pane.set_visible(False)
            self._state = ExplainState.IDLE
            return

        self._state = ExplainState.SETTINGS_LOADING
        try:
            settings = await self._fetch_settings()
        except SettingsUnavailableError as exc:
            if not self._tracker.is_current(token):
                return
            LOGGER.error("AI settings unavailable for lookup %r: %s", event.word, exc)
            self._settings = None
            self._pane.set_visible(True)
            self._pane.set_button_visible(False)
            self._pane.set_status_text(exc.status_message)
            self._pane.set_content_text("")
            self._state = ExplainState.FAILED
            self._bus.publish(ExplanationFailed(token=token, error_code=exc.error_code, message=exc.message))
            return
        if not self._tracker.is_current(token):
            return

        self._settings = settings
        self._pending = LookupEvent(word=event.word, context=event.context)
        self._pane.set_visible(True)

        if settings.is_manual:
            self._pane.set_button_visible(True)
            self._pane.set_status_text(STATUS_CLICK_TO_EXPLAIN)
            self._pane.set_content_text("")
            self._state = ExplainState.AWAITING_MANUAL_CLICK
            return

        self._pane.set_button_visible(False)
        self._state = ExplainState.AUTO_REQUESTED
        await self.request_explain(event.word, event.context)

    async def on_button_click(self) -> None:
        """Explain the pending lookup; a no-op unless it was shift-triggered."""
        if not is_ai_eligible(self._last_event):
            return
        if self._pending is None:
            return
        await self.request_explain(self._pending.word, self._pending.context)

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def request_explain(self, word: str, context: str) -> None:
        """Stream an explanation for ``word`` into the pane.

        All failures end here as a status line plus detail text; nothing is
        raised to the caller and nothing is retried.
        """
        token = self._tracker.next()
        self._pane.set_visible(True)
        self._pane.set_status_text(STATUS_THINKING)
        self._pane.set_content_text("")
        self._state = ExplainState.REQUESTING

        try:
            settings = self._settings
            if settings is None:
                settings = await self._fetch_settings()
                if not self._tracker.is_current(token):
                    return
                self._settings = settings
            if not self._tracker.is_current(token):
                return

            if not settings.api_url:
                raise ConfigMissingError()

            prompt = build_explain_prompt(settings.prompt, word, context)
            request = CompletionRequest(
                api_url=settings.api_url,
                api_key=settings.api_key,
                model=settings.model,
                prompt=prompt,
            )
            self._bus.publish(ExplanationRequested(token=token, word=word))
            final_text = await self._client.send(
                request,
                lambda partial: self._apply_partial(token, partial),
            )
            if not self._tracker.is_current(token):
                return
            self._apply_final(token, final_text)
        except Exception as exc:
            if not self._tracker.is_current(token):
                return
            self._apply_failure(token, exc)

    async def _fetch_settings(self) -> AISettings:
        try:
            settings = await self._settings_provider.get_settings()
            return settings.normalized()
        except SettingsUnavailableError:
            raise
        except Exception as exc:
            raise SettingsUnavailableError(str(exc) or "AI settings unavailable") from exc

    def _apply_partial(self, token: RequestToken, partial: str) -> None:
        if not self._tracker.is_current(token):
            return
        if self._state == ExplainState.REQUESTING:
            self._state = ExplainState.STREAMING
        self._pane.set_content_text(partial)
        parsed = try_parse_json_object(partial)
        if parsed is not None:
            # An object can close early mid-stream; it renders until a later one replaces it.
            self._pane.set_status_text("")
            self._pane.set_content_rendered(render_explanation(parsed))
        self._bus.publish(ExplanationPartial(token=token, text=partial))

    def _apply_final(self, token: RequestToken, final_text: str) -> None:
        parsed = try_parse_json_object(final_text)
        self._pane.set_status_text("")
        if parsed is not None:
            result = ExplanationResult.from_payload(parsed)
            if result.ignored_fields:
                mismatch = StructureMismatchError(result.ignored_fields)
                LOGGER.info("Explanation rendered with omissions: %s", mismatch.to_dict())
            self._pane.set_content_rendered(render_explanation(result))
            self._state = ExplainState.RENDERED
            self._bus.publish(ExplanationRendered(token=token, result=result))
        else:
            self._pane.set_content_text(final_text)
            self._state = ExplainState.RAW_FALLBACK
            self._bus.publish(ExplanationRawFallback(token=token, text=final_text))

    def _apply_failure(self, token: RequestToken, exc: Exception) -> None:
        if isinstance(exc, ExplainError):
            LOGGER.warning("AI explanation failed (%s): %s", exc.error_code, exc.message)
            status, code, detail = exc.status_message, exc.error_code, exc.message
        else:
            LOGGER.error("AI explanation failed unexpectedly", exc_info=exc)
            status, code, detail = STATUS_REQUEST_FAILED, ErrorCode.INTERNAL_ERROR, str(exc)
        self._pane.set_status_text(status)
        self._pane.set_content_text(detail)
        self._state = ExplainState.FAILED
        self._bus.publish(ExplanationFailed(token=token, error_code=code, message=detail))


__all__ = [
    "CompletionClient",
    "ExplanationSession",
    "STATUS_THINKING",
    "STATUS_CLICK_TO_EXPLAIN",
    "STATUS_REQUEST_FAILED",
]
