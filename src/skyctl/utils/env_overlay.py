"""Local ``.env`` overlays merged into the process environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import MutableMapping

from dotenv import dotenv_values


def dot_env_candidates(path: Path, env: str | None = None) -> list[Path]:
    candidates = [path]
    if env:
        candidates.append(path.with_name(f"{path.name}.{env}"))
    return candidates


def load_dot_env(path: Path, env: str | None = None) -> dict[str, str]:
    """Read ``.env`` and then ``.env.<env>``; the environment-specific file wins."""

    values: dict[str, str] = {}
    for candidate in dot_env_candidates(path, env):
        if not candidate.is_file():
            continue
        for key, value in dotenv_values(candidate).items():
            if value is not None:
                values[key] = value
    return values


def merge_missing(values: dict[str, str], environ: MutableMapping[str, str] | None = None) -> list[str]:
    """Inject keys that are not already set. Returns the injected keys."""

    target = os.environ if environ is None else environ
    injected: list[str] = []
    for key, value in values.items():
        if key in target:
            continue
        target[key] = value
        injected.append(key)
    return injected
