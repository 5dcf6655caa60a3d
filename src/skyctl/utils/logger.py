"""Console and debug-file logging for the skyctl CLI."""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import Iterable

from skyctl.settings import ISSUE_TRACKER_URL, RuntimeSettings

LOG = 15
logging.addLevelName(LOG, "LOG")

LOGGER_LEVELS = {
    "none": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "log": LOG,
    "debug": logging.DEBUG,
}
DEFAULT_LEVEL = "log"

logger = logging.getLogger("skyctl")

_SESSION_STAMP = time.strftime("%Y-%m-%d_%H-%M-%S")


class _ConsoleFormatter(logging.Formatter):
    _PREFIXES = {logging.ERROR: "[ERROR] ", logging.WARNING: "[WARNING] "}

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        prefix = self._PREFIXES.get(record.levelno, "")
        if record.exc_info and record.levelno <= logging.DEBUG:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return prefix + message


class _ConsoleHandler(logging.Handler):
    """Writes warnings and errors to stderr, everything else to stdout."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = sys.stderr if record.levelno >= logging.WARNING else sys.stdout
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:  # noqa: BLE001
            self.handleError(record)


def debug_log_filepath(settings: RuntimeSettings) -> Path:
    return settings.log_dir / f"skyctl-{_SESSION_STAMP}.log"


def configure_logging(settings: RuntimeSettings, level: str | None = None) -> logging.Logger:
    if not any(isinstance(handler, _ConsoleHandler) for handler in logger.handlers):
        handler = _ConsoleHandler()
        handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    set_logger_level(settings, level or os.environ.get("SKYCTL_LOG", DEFAULT_LEVEL))
    return logger


def set_logger_level(settings: RuntimeSettings, level: str) -> None:
    name = level.strip().lower()
    if name not in LOGGER_LEVELS:
        logger.warning('Unknown log level "%s"; using "%s"', level, DEFAULT_LEVEL)
        name = DEFAULT_LEVEL
    logger.setLevel(LOGGER_LEVELS[name])
    if name == "debug":
        _attach_debug_file(settings)


def _attach_debug_file(settings: RuntimeSettings) -> None:
    if any(isinstance(handler, logging.FileHandler) for handler in logger.handlers):
        return
    path = debug_log_filepath(settings)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        logger.debug("Unable to open debug log file %s: %s", path, exc)
        return
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)


def log(message: str = "") -> None:
    logger.log(LOG, message)


def log_possible_bug_message() -> None:
    logger.warning(
        "This may be a bug in skyctl. If you think so, please report it at: %s",
        ISSUE_TRACKER_URL,
    )


def log_build_failure(errors: Iterable[object], warnings: Iterable[object]) -> None:
    errors = list(errors)
    warnings = list(warnings)
    if errors:
        logger.error("Build failed with %d error%s:", len(errors), "" if len(errors) == 1 else "s")
        for item in errors:
            logger.error("%s", _diagnostic_text(item))
    for item in warnings:
        logger.warning("%s", _diagnostic_text(item))


def _diagnostic_text(item: object) -> str:
    text = getattr(item, "text", item)
    location = getattr(item, "location", None)
    if location is not None and getattr(location, "file", None):
        line = getattr(location, "line", None)
        return f"{location.file}:{line}: {text}" if line is not None else f"{location.file}: {text}"
    return str(text)
