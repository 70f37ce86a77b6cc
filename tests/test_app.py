"""Tests covering the command-line entry point."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

import pytest

from lookupai import app
from lookupai.ai.errors import HttpStatusError
from lookupai.services.settings import AIProfiles, AISettings, SecretVault, SettingsStore
from lookupai.utils import logging as logging_utils
from tests.helpers import FakeSettingsProvider, ScriptedClient, auto_settings

FINAL = json.dumps({"title": "Bank", "word": "bank", "meaning": "Riverside land."})


async def _run(provider: FakeSettingsProvider, client: ScriptedClient, **kwargs) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    options = {"context": "We sat on the bank.", "shift": True, "click": False}
    options.update(kwargs)
    code = await app.run_explain(
        "bank",
        settings_provider=provider,
        client=client,
        out=out,
        err=err,
        **options,
    )
    return code, out.getvalue(), err.getvalue()


@pytest.mark.asyncio
async def test_run_explain_prints_rendered_explanation() -> None:
    client = ScriptedClient(partials=[FINAL], final=FINAL)

    code, out, err = await _run(FakeSettingsProvider(), client)

    assert code == app.EXIT_OK
    assert out == "Bank\n[bank]\n\n## Meaning\nRiverside land.\n"
    assert "Explaining 'bank'" in err


@pytest.mark.asyncio
async def test_run_explain_manual_mode_waits_for_click() -> None:
    provider = FakeSettingsProvider(auto_settings(mode="manual"))
    client = ScriptedClient(final=FINAL)

    code, out, err = await _run(provider, client)

    assert code == app.EXIT_OK
    assert out == ""
    assert "Click AI to explain." in err
    assert client.requests == []

    code, out, _ = await _run(provider, client, click=True)

    assert code == app.EXIT_OK
    assert out.startswith("Bank")
    assert len(client.requests) == 1


@pytest.mark.asyncio
async def test_run_explain_without_shift_skips_request() -> None:
    client = ScriptedClient(final=FINAL)

    code, out, err = await _run(FakeSettingsProvider(), client, shift=False)

    assert code == app.EXIT_OK
    assert out == ""
    assert "not AI-eligible" in err
    assert client.requests == []


@pytest.mark.asyncio
async def test_run_explain_reports_failure() -> None:
    client = ScriptedClient(error=HttpStatusError(401, "bad key"))

    code, out, err = await _run(FakeSettingsProvider(), client)

    assert code == app.EXIT_FAILED
    assert out == ""
    assert "AI request failed.\nAI request failed (401): bad key" in err


@pytest.mark.asyncio
async def test_run_explain_prints_raw_fallback() -> None:
    client = ScriptedClient(final="plain prose answer")

    code, out, _ = await _run(FakeSettingsProvider(), client)

    assert code == app.EXIT_OK
    assert out == "plain prose answer\n"


def test_show_settings_redacts_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path, vault=SecretVault(key_path=path.with_suffix(".key")))
    store.save(AIProfiles(profiles={"default": AISettings(api_url="https://x", api_key="sk-123456")}))

    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(path), "show-settings"])

    assert excinfo.value.code == app.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["active_profile"] == "default"
    assert payload["settings"]["api_url"] == "https://x"
    assert payload["settings"]["api_key"] == "sk*****56"


def test_missing_command_prints_usage(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main([])

    assert excinfo.value.code == app.EXIT_USAGE
    assert "usage:" in capsys.readouterr().err


def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    log_path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("lookupai.test").debug("hello log")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "lookupai.log"
    assert logging_utils.get_log_path() == log_path
    assert "hello log" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


@pytest.mark.parametrize(
    ("env", "debug", "expected"),
    [
        ({}, False, logging.INFO),
        ({}, True, logging.DEBUG),
        ({"LOOKUPAI_DEBUG": "yes"}, False, logging.DEBUG),
        ({"LOOKUPAI_LOG_LEVEL": "warning"}, False, logging.WARNING),
        ({"LOOKUPAI_LOG_LEVEL": "chatty"}, False, logging.INFO),
        ({"LOOKUPAI_DEBUG": "1", "LOOKUPAI_LOG_LEVEL": "error"}, False, logging.DEBUG),
    ],
)
def test_resolve_level_from_flag_and_environment(
    monkeypatch: pytest.MonkeyPatch, env: dict[str, str], debug: bool, expected: int
) -> None:
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    assert logging_utils.resolve_level(debug) == expected


def test_console_handler_only_for_debug_level(tmp_path: Path) -> None:
    logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, force=True)
    info_handlers = [type(handler) for handler in logging.getLogger().handlers]

    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, force=True)
    debug_handlers = logging.getLogger().handlers

    assert logging.StreamHandler not in info_handlers
    assert any(type(handler) is logging.StreamHandler for handler in debug_handlers)
    stream_handler = next(handler for handler in debug_handlers if type(handler) is logging.StreamHandler)
    assert stream_handler.stream is sys.stderr
    logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, console=False, force=True)
