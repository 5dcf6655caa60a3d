"""Declarative command tree definitions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Literal, Optional, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover
    import argparse

    from skyctl.app.pipeline import InvocationContext

PROGRAM_NAME = "skyctl"

CommandStatus = Literal["stable", "open beta", "private beta", "experimental", "alpha"]
OptionType = Literal["string", "boolean", "number", "integer", "array"]

Handler = Callable[["argparse.Namespace", "InvocationContext"], Optional[int]]

CommandPath = Tuple[str, ...]


def parse_command_path(command: str | CommandPath) -> CommandPath:
    """Split ``"skyctl r2 bucket"`` into ``("r2", "bucket")``."""

    tokens = tuple(command.split()) if isinstance(command, str) else tuple(command)
    if tokens and tokens[0] == PROGRAM_NAME:
        tokens = tokens[1:]
    if not tokens or any(not token.strip() for token in tokens):
        raise ValueError(f"Invalid command path: {command!r}")
    return tokens


def format_command_path(path: CommandPath) -> str:
    return " ".join((PROGRAM_NAME, *path))


@dataclass(frozen=True)
class OptionSpec:
    name: str
    type: OptionType = "string"
    description: str = ""
    alias: str | tuple[str, ...] | None = None
    requires_arg: bool = True
    default: Any = None
    deprecated: bool = False
    hidden: bool = False
    choices: tuple[Any, ...] | None = None
    positional: bool = False
    optional: bool = True

    @property
    def aliases(self) -> tuple[str, ...]:
        if self.alias is None:
            return ()
        if isinstance(self.alias, str):
            return (self.alias,)
        return tuple(self.alias)


@dataclass(frozen=True)
class CommandMetadata:
    description: str
    owner: str = "core"
    status: CommandStatus = "stable"
    hidden: bool = False
    deprecated: bool = False
    deprecated_message: str | None = None
    epilogue: str | None = None

    @property
    def help_text(self) -> str:
        if self.status == "stable":
            return self.description
        return f"{self.description} [{self.status}]"


@dataclass(frozen=True)
class CommandDefinition:
    """A leaf command: metadata, option schema and handler."""

    metadata: CommandMetadata
    handler: Handler
    args: tuple[OptionSpec, ...] = ()


@dataclass(frozen=True)
class NamespaceDefinition:
    """A grouping node; invoking it without a subcommand prints its help."""

    metadata: CommandMetadata


@dataclass(frozen=True)
class AliasDefinition:
    """Points at the definition registered under another command path."""

    alias_of: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolve(self, target: "Definition") -> "CommandDefinition | NamespaceDefinition":
        if isinstance(target, AliasDefinition):
            raise TypeError("Aliases cannot point at other aliases")
        if not self.metadata:
            return target
        return replace(target, metadata=replace(target.metadata, **self.metadata))


Definition = Union[CommandDefinition, NamespaceDefinition, AliasDefinition]


def create_command(
    description: str,
    handler: Handler,
    *,
    args: list[OptionSpec] | tuple[OptionSpec, ...] = (),
    **metadata: Any,
) -> CommandDefinition:
    return CommandDefinition(CommandMetadata(description=description, **metadata), handler, tuple(args))


def create_namespace(description: str, **metadata: Any) -> NamespaceDefinition:
    return NamespaceDefinition(CommandMetadata(description=description, **metadata))


def create_alias(alias_of: str, **metadata: Any) -> AliasDefinition:
    return AliasDefinition(alias_of=alias_of, metadata=dict(metadata))


__all__ = [
    "AliasDefinition",
    "CommandDefinition",
    "CommandMetadata",
    "CommandPath",
    "Definition",
    "Handler",
    "NamespaceDefinition",
    "OptionSpec",
    "PROGRAM_NAME",
    "create_alias",
    "create_command",
    "create_namespace",
    "format_command_path",
    "parse_command_path",
]
