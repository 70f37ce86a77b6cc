"""Command-line entry point for running lookups against a completion endpoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Sequence, TextIO

from .ai.client import DEFAULT_TIMEOUT_SECONDS, StreamingCompletionClient
from .services.settings import SettingsProvider, SettingsStore, StoreSettingsProvider, redact_secret
from .ui.domain.explanation_session import CompletionClient, ExplanationSession
from .ui.events import EventBus, ExplanationRequested
from .ui.models.explanation_models import SHIFT_MODIFIER, ExplainState, LookupState
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> int:
    level = logging_utils.resolve_level(debug)
    log_path = logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s, path=%s)", logging.getLevelName(level), log_path)
    return level


class _ConsoleReporter:
    """Mirrors session events onto a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def on_requested(self, event: ExplanationRequested) -> None:
        print(f"Explaining '{event.word}'…", file=self._stream)


async def run_explain(
    word: str,
    *,
    context: str,
    shift: bool,
    click: bool,
    settings_provider: SettingsProvider,
    client: CompletionClient,
    out: TextIO,
    err: TextIO,
) -> int:
    """Run one lookup through an :class:`ExplanationSession` and print the pane."""

    bus: EventBus = EventBus()
    reporter = _ConsoleReporter(err)
    bus.subscribe(ExplanationRequested, reporter.on_requested)
    session = ExplanationSession(settings_provider, client, event_bus=bus)

    modifiers = (SHIFT_MODIFIER,) if shift else ()
    await session.on_content_update(word, LookupState.create(modifiers, context))

    if session.state is ExplainState.AWAITING_MANUAL_CLICK:
        if not click:
            print(session.pane.status_text, file=err)
            return EXIT_OK
        await session.on_button_click()

    if session.state is ExplainState.IDLE:
        print("Lookup is not AI-eligible (hold shift to explain).", file=err)
        return EXIT_OK
    if session.state is ExplainState.FAILED:
        print(session.pane.status_text, file=err)
        if session.pane.content_text:
            print(session.pane.content_text, file=err)
        return EXIT_FAILED

    print(session.pane.display_text(), file=out)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `lookupai` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    level = configure_logging(bool(args.debug))

    settings_path = args.settings_path or os.environ.get("LOOKUPAI_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)

    if args.command == "show-settings":
        raise SystemExit(_show_settings(store, profile=args.profile, out=sys.stdout))
    if args.command != "explain":
        parser.print_help(sys.stderr)
        raise SystemExit(EXIT_USAGE)

    raise SystemExit(asyncio.run(_explain_from_args(args, store, debug=level <= logging.DEBUG)))


async def _explain_from_args(args: argparse.Namespace, store: SettingsStore, *, debug: bool) -> int:
    client = StreamingCompletionClient(timeout=args.timeout, debug_logging=debug)
    try:
        return await run_explain(
            args.word,
            context=args.context or "",
            shift=args.shift,
            click=args.click,
            settings_provider=StoreSettingsProvider(store, profile=args.profile),
            client=client,
            out=sys.stdout,
            err=sys.stderr,
        )
    finally:
        await client.aclose()


def _show_settings(store: SettingsStore, *, profile: str | None, out: TextIO) -> int:
    profiles = store.load(profile=profile)
    active = asdict(profiles.active())
    active["api_key"] = redact_secret(active.get("api_key", ""))
    payload = {
        "path": str(store.path),
        "active_profile": profiles.active_profile,
        "profiles": sorted(profiles.profiles),
        "settings": active,
    }
    print(json.dumps(payload, indent=2, sort_keys=True), file=out)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lookupai", description="Stream AI explanations for dictionary lookups.")
    parser.add_argument("--settings-path", dest="settings_path", help="Path to the settings JSON file.")
    parser.add_argument("--profile", help="Settings profile to use (defaults to the stored active profile).")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on the console.")
    subparsers = parser.add_subparsers(dest="command")

    explain = subparsers.add_parser("explain", help="Explain a word, optionally within a sentence.")
    explain.add_argument("word")
    explain.add_argument("--context", default="", help="Sentence the word was found in.")
    explain.add_argument(
        "--no-shift",
        dest="shift",
        action="store_false",
        help="Simulate a plain lookup (no explanation is requested).",
    )
    explain.add_argument(
        "--click",
        action="store_true",
        help="In manual mode, press the explain button once the prompt appears.",
    )
    explain.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Wall-clock timeout in seconds for the completion request.",
    )

    subparsers.add_parser("show-settings", help="Print the active settings profile with the API key redacted.")
    return parser


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
