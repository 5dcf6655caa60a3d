"""Runtime plugin loading for skyctl."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from skyctl.app.registry import CommandRegistry
from skyctl.domain.commands import CommandPath, Definition, parse_command_path
from skyctl.plugins import PluginContext, PluginRegistrar, iter_entry_points
from skyctl.settings import RuntimeSettings
from skyctl.utils.logger import logger


@dataclass
class LoadedPlugin:
    name: str
    commands: List[CommandPath] = field(default_factory=list)


class Registrar(PluginRegistrar):
    """Collects a plugin's definitions until its register() hook has returned."""

    def __init__(self, plugin: LoadedPlugin) -> None:
        self._plugin = plugin
        self.entries: List[Tuple[str | CommandPath, Definition]] = []

    def define(self, entries: Iterable[Tuple[str | CommandPath, Definition]]) -> None:
        entries = list(entries)
        self.entries.extend(entries)
        self._plugin.commands.extend(parse_command_path(command) for command, _ in entries)


def load_plugins(settings: RuntimeSettings, registry: CommandRegistry) -> Dict[str, LoadedPlugin]:
    """Load every installed plugin; a plugin that fails to load or register is skipped."""

    loaded: Dict[str, LoadedPlugin] = {}
    context = PluginContext(settings=settings)
    for entry_point in iter_entry_points():
        record = LoadedPlugin(name=entry_point.name)
        try:
            plugin = entry_point.load()
            register = getattr(plugin, "register", None)
            if not callable(register):
                logger.debug("Plugin %s has no register() hook; skipping", entry_point.name)
                continue
            registrar = Registrar(record)
            register(registrar, context)
            registry.define(registrar.entries)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to load plugin %s: %s", entry_point.name, exc)
            logger.debug("Plugin %s failure", entry_point.name, exc_info=True)
            continue
        loaded[entry_point.name] = record
    return loaded
