"""Append-only session output file consumed by tooling that wraps skyctl."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from skyctl.settings import RuntimeSettings, env_path
from skyctl.utils.logger import logger

_DIRECTORY_FILES: dict[Path, Path] = {}


def output_file_path(settings: RuntimeSettings) -> Path | None:
    """Resolve the target at write time so variables merged from .env files apply."""

    fixed = env_path("SKYCTL_OUTPUT_FILE_PATH") or settings.output_file_path
    if fixed is not None:
        return fixed
    directory = env_path("SKYCTL_OUTPUT_FILE_DIRECTORY") or settings.output_file_directory
    if directory is None:
        return None
    if directory not in _DIRECTORY_FILES:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S_%f")
        _DIRECTORY_FILES[directory] = directory / f"skyctl-output-{stamp}-{os.getpid()}.json"
    return _DIRECTORY_FILES[directory]


def write_output(settings: RuntimeSettings, entry: dict[str, Any]) -> Path | None:
    """Best-effort: a failure to write is logged and never raised."""

    path = output_file_path(settings)
    if path is None:
        return None
    record = dict(entry)
    record["timestamp"] = datetime.now(timezone.utc).isoformat()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        logger.debug("Unable to write session output to %s: %s", path, exc)
        return None
    return path
