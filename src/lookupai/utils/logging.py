"""Logging setup for the lookupai command line and embedding hosts.

The level comes from the caller, else ``LOOKUPAI_DEBUG`` / ``LOOKUPAI_LOG_LEVEL``.
Records always go to a rotating file; console output goes to stderr so
explanations printed on stdout stay clean.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["resolve_level", "setup_logging", "get_log_path"]

_DEFAULT_LOG_DIR = Path.home() / ".lookupai" / "logs"
_LOG_DIR_ENV = "LOOKUPAI_LOG_DIR"
_DEBUG_ENV = "LOOKUPAI_DEBUG"
_LEVEL_ENV = "LOOKUPAI_LOG_LEVEL"
_LOG_FILE_NAME = "lookupai.log"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})
# Transport libraries log every request line at DEBUG.
_TRANSPORT_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_CONFIGURED = False
_LOG_PATH: Path | None = None


def resolve_level(debug: bool = False) -> int:
    """Pick the root level: ``debug`` or ``LOOKUPAI_DEBUG`` win, then ``LOOKUPAI_LOG_LEVEL``."""

    if debug or os.environ.get(_DEBUG_ENV, "").strip().lower() in _TRUE_VALUES:
        return logging.DEBUG
    name = os.environ.get(_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    level: int | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the rotating file handler and, for debug runs, a stderr handler.

    ``console`` defaults to on only when the resolved level is DEBUG.
    Repeated calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved = resolve_level() if level is None else level
    show_console = resolved <= logging.DEBUG if console is None else console

    target_dir = Path(log_dir or os.environ.get(_LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if show_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)

    logging.basicConfig(level=resolved, handlers=handlers, force=True)
    logging.captureWarnings(True)
    transport_level = max(resolved, logging.WARNING)
    for logger_name in _TRANSPORT_LOGGERS:
        logging.getLogger(logger_name).setLevel(transport_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    return _LOG_PATH
