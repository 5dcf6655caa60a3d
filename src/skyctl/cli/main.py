"""skyctl entrypoint."""

from __future__ import annotations

import sys

from skyctl.api import ApiClient, whoami
from skyctl.app.lifecycle import run_invocation
from skyctl.cli.parser import CommandLineParser
from skyctl.commands import register_builtin_commands
from skyctl.plugins.loader import load_plugins
from skyctl.settings import SETTINGS, RuntimeSettings
from skyctl.utils.logger import configure_logging


def create_cli_parser(settings: RuntimeSettings) -> CommandLineParser:
    parser = CommandLineParser()
    register_builtin_commands(parser.registry)
    load_plugins(settings, parser.registry)
    parser.registry.register_all()
    return parser


def main(argv: list[str] | None = None) -> int:
    raw_args = sys.argv[1:] if argv is None else list(argv)
    configure_logging(SETTINGS)
    parser = create_cli_parser(SETTINGS)
    return run_invocation(
        raw_args,
        settings=SETTINGS,
        parser=parser,
        identity_lookup=lambda account_tag: whoami(ApiClient(SETTINGS), account_tag),
    )


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
