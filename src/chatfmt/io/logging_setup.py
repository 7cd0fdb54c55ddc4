"""Logging bootstrap for the chatfmt command line.

Library modules only call logging.getLogger(__name__). The entry point
calls configure() once, which attaches two handlers to the "chatfmt"
logger: stderr for the user (stdout carries the rendered message) and a
rotating file for later inspection.

// [LAW:single-enforcer] Logger handler wiring is enforced in this module only.
// [LAW:one-source-of-truth] Log path and level are resolved here and returned to callers.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "chatfmt"
DEFAULT_LEVEL = "WARNING"
DEFAULT_LOG_DIR = "~/.local/share/chatfmt/logs"

_FILE_MAX_BYTES = 2 * 1024 * 1024
_FILE_BACKUPS = 3
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True)
class LoggingRuntime:
    """Resolved runtime logging configuration."""

    level_name: str
    level: int
    file_path: str


_RUNTIME: LoggingRuntime | None = None


def resolve_level(raw: str | None) -> tuple[str, int]:
    """Map a level name in any case to (name, value); unknown names mean WARNING."""
    name = (raw or DEFAULT_LEVEL).strip().upper()
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        return DEFAULT_LEVEL, logging.WARNING
    return name, value


def resolve_log_path(run_name: str) -> Path:
    """CHATFMT_LOG_FILE if set, else a timestamped file under CHATFMT_LOG_DIR."""
    explicit = os.environ.get("CHATFMT_LOG_FILE")
    if explicit:
        return Path(explicit)
    log_dir = Path(os.path.expanduser(os.environ.get("CHATFMT_LOG_DIR", DEFAULT_LOG_DIR)))
    stem = _UNSAFE_NAME_RE.sub("-", run_name).strip("-_") or LOGGER_NAME
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return log_dir / f"{stem}-{stamp}-{os.getpid()}.log"


def _build_handlers(level: int, path: Path) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("chatfmt: %(levelname)s [%(name)s] %(message)s"))

    logfile = RotatingFileHandler(
        path, maxBytes=_FILE_MAX_BYTES, backupCount=_FILE_BACKUPS, encoding="utf-8"
    )
    logfile.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )

    for handler in (console, logfile):
        handler.setLevel(level)
    return [console, logfile]


def configure(run_name: str = LOGGER_NAME, level: str | None = None) -> LoggingRuntime:
    """Attach chatfmt's stderr and rotating-file handlers.

    Level comes from the argument, else CHATFMT_LOG_LEVEL, else WARNING.
    Idempotent: repeated calls return the originally configured runtime.
    """
    global _RUNTIME
    if _RUNTIME is not None:
        return _RUNTIME

    level_name, level_value = resolve_level(level or os.environ.get("CHATFMT_LOG_LEVEL"))
    path = resolve_log_path(run_name)
    path.parent.mkdir(parents=True, exist_ok=True)

    # [LAW:single-enforcer] Every chatfmt.* logger propagates to this one.
    logger = logging.getLogger(LOGGER_NAME)
    _detach_handlers(logger)
    logger.setLevel(level_value)
    logger.propagate = False
    for handler in _build_handlers(level_value, path):
        logger.addHandler(handler)

    logging.captureWarnings(True)

    _RUNTIME = LoggingRuntime(level_name=level_name, level=level_value, file_path=str(path))
    return _RUNTIME


def get_runtime() -> LoggingRuntime | None:
    """Return configured logging runtime, if configure() has run."""
    return _RUNTIME


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def reset() -> None:
    """Detach handlers and forget the runtime, so configure() runs afresh."""
    global _RUNTIME
    _detach_handlers(logging.getLogger(LOGGER_NAME))
    logging.getLogger(LOGGER_NAME).propagate = True
    logging.captureWarnings(False)
    _RUNTIME = None
