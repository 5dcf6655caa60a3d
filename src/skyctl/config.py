"""Project configuration discovery (``skyctl.yaml``)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from skyctl.domain.errors import UserError

CONFIG_FILENAMES = ("skyctl.yaml", "skyctl.yml", "skyctl.json")


class ConfigError(UserError):
    """Raised when the project configuration cannot be read."""


def find_config_path(start: Path) -> Path | None:
    current = start.expanduser().resolve()
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def read_raw_config(config_path: Path | str | None = None, *, cwd: Path | None = None) -> tuple[dict[str, Any], Path | None]:
    """Return the unvalidated config mapping and the file it came from."""

    if config_path is not None:
        path: Path | None = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
    else:
        path = find_config_path(cwd or Path.cwd())
    if path is None:
        return {}, None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, OSError) as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration in {path}: expected a mapping at the top level")
    return data, path.resolve()
