"""argparse binding for the command tree."""

from __future__ import annotations

import argparse
from textwrap import dedent
from typing import Dict, List, Sequence

from skyctl import __version__
from skyctl.app.registry import CommandRegistry
from skyctl.domain.commands import (
    PROGRAM_NAME,
    CommandDefinition,
    CommandPath,
    NamespaceDefinition,
    OptionSpec,
    format_command_path,
)
from skyctl.domain.errors import CommandLineArgsError, RegistrationError
from skyctl.settings import ISSUE_TRACKER_URL
from skyctl.utils.logger import LOGGER_LEVELS, log

HANDLER_ATTR = "_skyctl_handler"
PATH_ATTR = "_skyctl_path"
DEFINITION_ATTR = "_skyctl_definition"

HELP_OVERVIEW = dedent(
    """
    Operate workers, storage and secrets across your accounts.

    Run "skyctl <command> --help" for details about a command.
    """
)


class ParserExit(Exception):
    """argparse asked to exit (``--help``); carries the exit status."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(status)
        self.status = status


class SkyctlArgumentParser(argparse.ArgumentParser):
    """Raises instead of exiting so one boundary can classify every failure."""

    def error(self, message: str):  # type: ignore[override]
        raise CommandLineArgsError(message, telemetry_message="argument validation error")

    def exit(self, status: int = 0, message: str | None = None):  # type: ignore[override]
        if message:
            self._print_message(message)
        raise ParserExit(status)

    def _check_value(self, action, value):
        if isinstance(action, argparse._SubParsersAction) and value not in action.choices:
            tokens = [*self.prog.split()[1:], value]
            raise CommandLineArgsError(f"Unknown command: {' '.join(tokens)}.", telemetry_message="unknown command")
        super()._check_value(action, value)


def _global_options_parser() -> argparse.ArgumentParser:
    parser = SkyctlArgumentParser(prog=PROGRAM_NAME, add_help=False, allow_abbrev=False)
    _add_global_options(parser, default=None)
    return parser


def _add_global_options(parser: argparse.ArgumentParser, *, default) -> None:
    group = parser.add_argument_group("GLOBAL FLAGS")
    group.add_argument(
        "--cwd",
        action="append",
        metavar="DIR",
        default=default,
        help="Run as if skyctl was started in DIR instead of the current working directory",
    )
    group.add_argument(
        "-c",
        "--config",
        action="append",
        metavar="PATH",
        default=default,
        help="Path to the skyctl configuration file",
    )
    group.add_argument(
        "-e",
        "--env",
        action="append",
        metavar="NAME",
        default=default,
        help="Environment to use for operations and for selecting .env files",
    )
    group.add_argument(
        "--log-level",
        choices=sorted(LOGGER_LEVELS),
        default=default,
        help="Verbosity of console output",
    )
    group.add_argument(
        "-v",
        "--version",
        action="store_true",
        default=False if default is None else default,
        help="Show version number",
    )


def _show_help_handler(parser: argparse.ArgumentParser):
    def _handler(args: argparse.Namespace, context) -> int:
        parser.print_help()
        return 0

    return _handler


def _root_handler(parser: argparse.ArgumentParser):
    def _handler(args: argparse.Namespace, context) -> int:
        options = getattr(context, "global_options", None)
        if options is not None and options.version:
            log(__version__)
            return 0
        parser.print_help()
        return 0

    return _handler


def _dest(name: str) -> str:
    return name.replace("-", "_")


def _flag(alias: str) -> str:
    return f"-{alias}" if len(alias) == 1 else f"--{alias}"


def add_option(parser: argparse.ArgumentParser, spec: OptionSpec) -> None:
    help_text = spec.description
    if spec.deprecated:
        help_text = f"{help_text} [deprecated]".strip()
    if spec.hidden:
        help_text = argparse.SUPPRESS
    kwargs: dict = {"help": help_text}
    if spec.choices is not None:
        kwargs["choices"] = list(spec.choices)
    if spec.type == "number":
        kwargs["type"] = float
    elif spec.type == "integer":
        kwargs["type"] = int

    if spec.positional:
        if spec.type == "array":
            kwargs["nargs"] = "*" if spec.optional else "+"
        elif spec.optional:
            kwargs["nargs"] = "?"
        if spec.default is not None:
            kwargs["default"] = spec.default
        parser.add_argument(_dest(spec.name), metavar=spec.name, **kwargs)
        return

    flags = [f"--{spec.name}", *(_flag(alias) for alias in spec.aliases)]
    kwargs["dest"] = _dest(spec.name)
    if spec.type == "boolean":
        kwargs["action"] = argparse.BooleanOptionalAction
        kwargs["default"] = bool(spec.default) if spec.default is not None else None
    else:
        kwargs["default"] = spec.default
        if spec.type == "array":
            kwargs["nargs"] = "+" if spec.requires_arg else "*"
        elif not spec.requires_arg:
            kwargs["nargs"] = "?"
            kwargs["const"] = ""
    parser.add_argument(*flags, **kwargs)


class ParserBinder:
    """Turns registry entries into nested argparse sub-parsers."""

    def __init__(self, root: SkyctlArgumentParser) -> None:
        self._parsers: Dict[CommandPath, argparse.ArgumentParser] = {(): root}
        self._subparsers: Dict[CommandPath, argparse._SubParsersAction] = {}
        self._visible: Dict[CommandPath, List[str]] = {}
        self.order: List[CommandPath] = []

    def parser_for(self, path: CommandPath) -> argparse.ArgumentParser | None:
        return self._parsers.get(path)

    def _subparsers_for(self, path: CommandPath) -> argparse._SubParsersAction:
        if path not in self._subparsers:
            parent = self._parsers[path]
            title = "COMMANDS" if not path else "SUBCOMMANDS"
            self._subparsers[path] = parent.add_subparsers(title=title, parser_class=SkyctlArgumentParser)
            self._visible[path] = []
        return self._subparsers[path]

    def __call__(self, path: CommandPath, definition: CommandDefinition | NamespaceDefinition) -> None:
        parent_path = path[:-1]
        if parent_path not in self._parsers:
            raise RegistrationError(f'Cannot bind "{format_command_path(path)}" before its parent namespace')
        if path in self._parsers:
            raise RegistrationError(f'"{format_command_path(path)}" is already bound')
        subparsers = self._subparsers_for(parent_path)
        metadata = definition.metadata
        kwargs = {
            "prog": format_command_path(path),
            "description": metadata.help_text,
            "epilog": metadata.epilogue,
            "formatter_class": argparse.RawDescriptionHelpFormatter,
        }
        if not metadata.hidden:
            kwargs["help"] = metadata.help_text
        parser = subparsers.add_parser(path[-1], **kwargs)
        if not metadata.hidden:
            visible = self._visible[parent_path]
            visible.append(path[-1])
            subparsers.metavar = "{" + ",".join(visible) + "}"
        elif not self._visible[parent_path]:
            subparsers.metavar = "COMMAND"
        self._parsers[path] = parser
        self.order.append(path)

        if isinstance(definition, NamespaceDefinition):
            handler = _show_help_handler(parser)
        else:
            for spec in definition.args:
                add_option(parser, spec)
            handler = definition.handler
        parser.set_defaults(**{HANDLER_ATTR: handler, PATH_ATTR: path, DEFINITION_ATTR: definition})


class CommandLineParser:
    """Global options pre-parse plus the command tree parser."""

    def __init__(self, *, prog: str = PROGRAM_NAME) -> None:
        self.root = SkyctlArgumentParser(
            prog=prog,
            description=HELP_OVERVIEW,
            epilog=f"Please report any issues to {ISSUE_TRACKER_URL}",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        _add_global_options(self.root, default=argparse.SUPPRESS)
        self.root.set_defaults(**{HANDLER_ATTR: _root_handler(self.root), PATH_ATTR: (), DEFINITION_ATTR: None})
        self.global_options = _global_options_parser()
        self.binder = ParserBinder(self.root)
        self.registry = CommandRegistry(self.binder)

    def parse(self, argv: Sequence[str]) -> tuple[argparse.Namespace, argparse.Namespace]:
        self.registry.ensure_sealed()
        global_options, remaining = self.global_options.parse_known_args(list(argv))
        args = self.root.parse_args(remaining)
        return global_options, args

    def show_contextual_help(self, argv: Sequence[str]) -> None:
        """Print help for the deepest command ``argv`` reaches."""

        try:
            _, remaining = self.global_options.parse_known_args(list(argv))
        except CommandLineArgsError:
            remaining = list(argv)
        path: CommandPath = ()
        for token in remaining:
            if token.startswith("-"):
                continue
            if self.binder.parser_for((*path, token)) is None:
                break
            path = (*path, token)
        parser = self.binder.parser_for(path) or self.root
        parser.print_help()
