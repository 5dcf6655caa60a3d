"""Built-in command groups."""

from __future__ import annotations

from skyctl.app.registry import CommandRegistry
from skyctl.commands import deployments, docs, plugins, telemetry, user

BUILTIN_MODULES = (docs, user, telemetry, deployments, plugins)


def register_builtin_commands(registry: CommandRegistry) -> None:
    for module in BUILTIN_MODULES:
        registry.define(module.COMMANDS)
    for module in BUILTIN_MODULES:
        for root in module.ROOTS:
            registry.register_namespace(root)
