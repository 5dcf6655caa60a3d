from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_HOME = ROOT / ".test_place" / "global-home"
os.environ.setdefault("SKYCTL_HOME", str(SANDBOX_HOME))
os.environ.setdefault("SKYCTL_SEND_METRICS", "false")
SANDBOX_HOME.mkdir(parents=True, exist_ok=True)
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from skyctl.settings import RuntimeSettings  # noqa: E402
from skyctl.utils.logger import configure_logging, logger  # noqa: E402


@pytest.fixture
def runtime_settings(tmp_path: Path) -> RuntimeSettings:
    dirs = {name: tmp_path / name for name in ("home", "state", "logs")}
    for path in dirs.values():
        path.mkdir(parents=True, exist_ok=True)
    return RuntimeSettings(
        home_dir=dirs["home"],
        state_dir=dirs["state"],
        log_dir=dirs["logs"],
        cli_version="0.6.0",
        api_base_url="https://api.example.test/client/v4",
    )


@pytest.fixture(autouse=True)
def _isolated_run(monkeypatch, tmp_path: Path, runtime_settings: RuntimeSettings):
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    for name in (
        "SKYCTL_API_TOKEN",
        "SKYCTL_API_KEY",
        "SKYCTL_EMAIL",
        "SKYCTL_ACCOUNT_ID",
        "SKYCTL_IPC_FD",
        "SKYCTL_OUTPUT_FILE_PATH",
        "SKYCTL_OUTPUT_FILE_DIRECTORY",
        "CI",
    ):
        monkeypatch.delenv(name, raising=False)
    configure_logging(runtime_settings, "log")
    yield
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()


class FakeDispatcher:
    def __init__(self):
        self.events = []
        self.drained = []

    def send_command_event(self, status, properties):
        self.events.append((status, dict(properties)))

    def drain(self, timeout):
        self.drained.append(timeout)
        return True

    @property
    def statuses(self):
        return [status for status, _ in self.events]


@pytest.fixture
def fake_dispatcher():
    dispatcher = FakeDispatcher()
    dispatcher.factory = lambda settings, **kwargs: dispatcher
    return dispatcher


@pytest.fixture
def build_parser():
    from skyctl.cli.parser import CommandLineParser

    def _build(entries):
        parser = CommandLineParser()
        parser.registry.define(entries)
        parser.registry.register_all()
        return parser

    return _build
