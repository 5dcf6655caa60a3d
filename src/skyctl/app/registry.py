"""Two-phase command registration: define everything, then seal into the parser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Protocol, Tuple

from skyctl.domain.commands import (
    AliasDefinition,
    CommandDefinition,
    CommandPath,
    Definition,
    NamespaceDefinition,
    format_command_path,
    parse_command_path,
)
from skyctl.domain.errors import RegistrationError


class CommandBinder(Protocol):  # pragma: no cover
    def __call__(self, path: CommandPath, definition: CommandDefinition | NamespaceDefinition) -> None:
        ...


@dataclass(frozen=True)
class RegistrationEntry:
    path: CommandPath
    definition: Definition

    @property
    def command(self) -> str:
        return format_command_path(self.path)


class CommandRegistry:
    """Buffers command definitions and binds them to a parser in a deterministic order.

    ``define`` only records entries. ``register_namespace`` and ``register_all``
    move entries from the pending map to the bound map, calling the binder for
    each one: parents before children, siblings in declaration order.
    """

    def __init__(self, bind: CommandBinder) -> None:
        self._bind = bind
        self._pending: Dict[CommandPath, RegistrationEntry] = {}
        self._bound: Dict[CommandPath, RegistrationEntry] = {}
        self._sealed_roots: set[str] = set()
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def pending(self) -> Tuple[RegistrationEntry, ...]:
        return tuple(self._pending.values())

    @property
    def bound(self) -> Tuple[RegistrationEntry, ...]:
        return tuple(self._bound.values())

    def define(self, entries: Iterable[Tuple[str | CommandPath, Definition]]) -> None:
        if self._sealed:
            raise RegistrationError("Cannot define commands after register_all() has been called")
        staged: Dict[CommandPath, RegistrationEntry] = {}
        for command, definition in entries:
            path = parse_command_path(command)
            if path in self._pending or path in self._bound or path in staged:
                raise RegistrationError(f'Duplicate definition for "{format_command_path(path)}"')
            if path[0] in self._sealed_roots:
                raise RegistrationError(
                    f'Cannot define "{format_command_path(path)}": namespace "{path[0]}" is already registered'
                )
            staged[path] = RegistrationEntry(path=path, definition=definition)
        self._pending.update(staged)

    def register_namespace(self, root: str) -> None:
        if self._sealed:
            raise RegistrationError("Cannot register namespaces after register_all() has been called")
        self._register_root(root)

    def register_all(self) -> None:
        if self._sealed:
            raise RegistrationError("register_all() has already been called")
        roots: List[str] = []
        for path in self._pending:
            if path[0] not in roots:
                roots.append(path[0])
        for root in roots:
            self._register_root(root)
        self._sealed = True

    def ensure_sealed(self) -> None:
        if not self._sealed:
            raise RegistrationError("Commands must be sealed with register_all() before parsing")

    def _register_root(self, root: str) -> None:
        if root in self._sealed_roots:
            raise RegistrationError(f'Namespace "{root}" is already registered')
        entries = [entry for path, entry in self._pending.items() if path[0] == root]
        if not entries:
            raise RegistrationError(f'No commands defined for namespace "{root}"')
        for entry in entries:
            self._bind_with_parents(entry.path)
        self._sealed_roots.add(root)

    def _bind_with_parents(self, path: CommandPath) -> None:
        if path in self._bound:
            return
        parent = path[:-1]
        if parent and parent not in self._bound:
            if parent not in self._pending:
                raise RegistrationError(f'Missing namespace definition for "{format_command_path(parent)}"')
            self._bind_with_parents(parent)
        entry = self._pending.pop(path)
        self._bound[path] = entry
        definition = entry.definition
        if isinstance(definition, AliasDefinition):
            self._bind_alias(path, definition)
        else:
            self._bind(path, definition)

    def _lookup(self, path: CommandPath) -> Definition | None:
        entry = self._bound.get(path) or self._pending.get(path)
        return entry.definition if entry is not None else None

    def _bind_alias(self, path: CommandPath, alias: AliasDefinition) -> None:
        target_path = parse_command_path(alias.alias_of)
        target = self._lookup(target_path)
        if target is None:
            raise RegistrationError(
                f'Alias "{format_command_path(path)}" points at undefined command "{format_command_path(target_path)}"'
            )
        if isinstance(target, AliasDefinition):
            raise RegistrationError(f'Alias "{format_command_path(path)}" cannot point at another alias')
        self._bind(path, alias.resolve(target))
        if isinstance(target, NamespaceDefinition):
            self._bind_alias_children(path, target_path)

    def _bind_alias_children(self, alias_path: CommandPath, target_path: CommandPath) -> None:
        depth = len(target_path)
        known = list(self._bound.values()) + list(self._pending.values())
        known.sort(key=lambda entry: len(entry.path))
        for entry in known:
            if len(entry.path) <= depth or entry.path[:depth] != target_path:
                continue
            child_path = alias_path + entry.path[depth:]
            if child_path in self._bound or child_path in self._pending:
                raise RegistrationError(f'Duplicate definition for "{format_command_path(child_path)}"')
            definition = entry.definition
            if isinstance(definition, AliasDefinition):
                definition = self._lookup(parse_command_path(definition.alias_of))
                if definition is None or isinstance(definition, AliasDefinition):
                    raise RegistrationError(f'Cannot resolve alias "{entry.command}"')
            self._bound[child_path] = RegistrationEntry(path=child_path, definition=definition)
            self._bind(child_path, definition)
