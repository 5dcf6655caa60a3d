"""Domain types for the skyctl command tree."""

from .commands import (
    AliasDefinition,
    CommandDefinition,
    CommandMetadata,
    CommandPath,
    Definition,
    NamespaceDefinition,
    OptionSpec,
    create_alias,
    create_command,
    create_namespace,
    format_command_path,
    parse_command_path,
)
from .errors import (
    APIError,
    BuildFailure,
    BuildMessage,
    CommandLineArgsError,
    ErrorEvent,
    FatalError,
    JsonFriendlyFatalError,
    Location,
    Note,
    ParseError,
    RegistrationError,
    UserError,
    format_message,
)

__all__ = [
    "APIError",
    "AliasDefinition",
    "BuildFailure",
    "BuildMessage",
    "CommandDefinition",
    "CommandLineArgsError",
    "CommandMetadata",
    "CommandPath",
    "Definition",
    "ErrorEvent",
    "FatalError",
    "JsonFriendlyFatalError",
    "Location",
    "NamespaceDefinition",
    "Note",
    "OptionSpec",
    "ParseError",
    "RegistrationError",
    "UserError",
    "create_alias",
    "create_command",
    "create_namespace",
    "format_command_path",
    "format_message",
    "parse_command_path",
]
