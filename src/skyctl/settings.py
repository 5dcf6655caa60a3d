"""Runtime settings for the skyctl CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from skyctl import __version__

DEFAULT_API_BASE_URL = "https://api.skyctl.dev/client/v4"
ISSUE_TRACKER_URL = "https://github.com/skyctl/skyctl/issues/new/choose"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY


def falsy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _FALSY


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    state_dir: Path
    log_dir: Path
    cli_version: str = __version__
    api_base_url: str = DEFAULT_API_BASE_URL
    telemetry_url: str | None = None
    output_file_path: Path | None = None
    output_file_directory: Path | None = None
    report_errors: bool = True

    @property
    def metrics_config_file(self) -> Path:
        return self.state_dir / "metrics.json"

    @property
    def telemetry_log(self) -> Path:
        return self.log_dir / "telemetry.jsonl"

    @property
    def error_report_log(self) -> Path:
        return self.log_dir / "error-reports.jsonl"


def _default_home_dir() -> Path:
    override = os.environ.get("SKYCTL_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".skyctl"


def env_path(var: str) -> Path | None:
    value = os.environ.get(var, "").strip()
    return Path(value).expanduser() if value else None


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(
        home_dir=base,
        state_dir=base / "state",
        log_dir=base / "logs",
        api_base_url=os.environ.get("SKYCTL_API_BASE_URL", DEFAULT_API_BASE_URL),
        telemetry_url=os.environ.get("SKYCTL_TELEMETRY_URL") or None,
        output_file_path=env_path("SKYCTL_OUTPUT_FILE_PATH"),
        output_file_directory=env_path("SKYCTL_OUTPUT_FILE_DIRECTORY"),
        report_errors=not falsy(os.environ.get("SKYCTL_REPORT_ERRORS")),
    )


SETTINGS = load_settings()
