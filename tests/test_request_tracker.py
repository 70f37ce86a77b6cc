"""Tests for request-token tracking and the AI trigger gate."""

from __future__ import annotations

from lookupai.ui.domain.request_tracker import RequestLifecycleTracker
from lookupai.ui.domain.trigger_gate import is_ai_eligible
from lookupai.ui.models.explanation_models import LookupEvent, LookupState


class TestRequestLifecycleTracker:
    def test_tokens_strictly_increase(self) -> None:
        tracker = RequestLifecycleTracker()

        tokens = [tracker.next() for _ in range(5)]

        assert tokens == sorted(set(tokens))
        assert tracker.current == tokens[-1]

    def test_only_newest_token_is_current(self) -> None:
        tracker = RequestLifecycleTracker()
        first = tracker.next()
        second = tracker.next()

        assert tracker.is_current(first) is False
        assert tracker.is_current(second) is True

    def test_invalidate_makes_every_token_stale(self) -> None:
        tracker = RequestLifecycleTracker()
        token = tracker.next()

        tracker.invalidate()

        assert tracker.is_current(token) is False
        assert tracker.next() > token

    def test_stale_token_never_becomes_current_again(self) -> None:
        tracker = RequestLifecycleTracker()
        stale = tracker.next()
        tracker.invalidate()
        tracker.next()
        tracker.invalidate()

        assert tracker.is_current(stale) is False


class TestTriggerGate:
    def test_shift_lookup_is_eligible(self) -> None:
        event = LookupEvent.from_lookup("bank", LookupState.create(["shift"], "sentence"))

        assert is_ai_eligible(event) is True
        assert event.context == "sentence"

    def test_other_modifiers_are_not_eligible(self) -> None:
        event = LookupEvent.from_lookup("bank", LookupState.create(["alt", "ctrl"]))

        assert is_ai_eligible(event) is False

    def test_shift_alongside_other_modifiers_is_eligible(self) -> None:
        event = LookupEvent.from_lookup("bank", LookupState.create(["ctrl", "shift"]))

        assert is_ai_eligible(event) is True

    def test_missing_state_or_event_is_not_eligible(self) -> None:
        assert is_ai_eligible(LookupEvent.from_lookup("bank", None)) is False
        assert is_ai_eligible(None) is False

    def test_non_string_inputs_become_empty(self) -> None:
        state = LookupState(modifier_keys=frozenset({"shift"}), sentence_text=None)

        event = LookupEvent.from_lookup(42, state)

        assert event.word == ""
        assert event.context == ""
        assert is_ai_eligible(event) is True
