"""``skyctl plugins``: list installed command plugins."""

from __future__ import annotations

import argparse

from skyctl.domain.commands import OptionSpec, create_command, create_namespace
from skyctl.domain.errors import UserError
from skyctl.plugins import iter_entry_points
from skyctl.utils.logger import log


def _list(args: argparse.Namespace, context) -> int:
    eps = sorted(iter_entry_points(), key=lambda ep: ep.name)
    if not eps:
        log("No plugins registered")
        return 0
    for ep in eps:
        dist = getattr(ep, "dist", None)
        dist_name = dist.name if dist else "unknown"
        log(f"{ep.name}\t{ep.value}\t[{dist_name}]")
    return 0


def _info(args: argparse.Namespace, context) -> int:
    for ep in iter_entry_points():
        if ep.name != args.name:
            continue
        log(f"Name: {ep.name}")
        log(f"Target: {ep.value}")
        dist = getattr(ep, "dist", None)
        if dist is not None:
            log(f"Distribution: {dist.name} {dist.version}")
        return 0
    raise UserError(f"Plugin {args.name} not found")


COMMANDS = [
    ("skyctl plugins", create_namespace("Inspect installed skyctl plugins")),
    ("skyctl plugins list", create_command("List discovered plugins", _list)),
    (
        "skyctl plugins info",
        create_command(
            "Show plugin metadata",
            _info,
            args=[OptionSpec("name", positional=True, optional=False, description="Entry point name")],
        ),
    ),
]

ROOTS = ("plugins",)
