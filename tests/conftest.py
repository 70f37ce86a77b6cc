"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from lookupai.ui.events import EventBus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "LOOKUPAI_API_URL",
        "LOOKUPAI_API_KEY",
        "LOOKUPAI_MODEL",
        "LOOKUPAI_MODE",
        "LOOKUPAI_PROMPT",
        "LOOKUPAI_PROFILE",
        "LOOKUPAI_SETTINGS_PATH",
        "LOOKUPAI_DEBUG",
        "LOOKUPAI_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOOKUPAI_LOG_DIR", str(tmp_path / "logs"))
