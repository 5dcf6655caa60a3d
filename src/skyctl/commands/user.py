"""``skyctl whoami``."""

from __future__ import annotations

import argparse

from skyctl.api import ApiClient, whoami
from skyctl.domain.commands import OptionSpec, create_command


def _whoami(args: argparse.Namespace, context) -> int:
    whoami(ApiClient(context.settings), args.account)
    return 0


COMMANDS = [
    (
        "skyctl whoami",
        create_command(
            "Retrieve your user information",
            _whoami,
            args=[OptionSpec("account", description="Check whether you have access to this account id")],
        ),
    ),
]

ROOTS = ("whoami",)
