"""Plugin loading utilities for skyctl."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import metadata
from typing import Iterable, Protocol, Tuple

from skyctl.domain.commands import CommandPath, Definition
from skyctl.settings import RuntimeSettings

ENTRY_POINT_GROUP = "skyctl.plugins"


@dataclass(frozen=True)
class PluginContext:
    settings: RuntimeSettings


class PluginRegistrar(Protocol):  # pragma: no cover
    def define(self, entries: Iterable[Tuple[str | CommandPath, Definition]]) -> None:
        ...


class SkyctlPlugin(Protocol):  # pragma: no cover
    name: str

    def register(self, registrar: PluginRegistrar, context: PluginContext) -> None:
        ...


def iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=ENTRY_POINT_GROUP)
