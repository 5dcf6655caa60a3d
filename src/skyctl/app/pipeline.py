"""Ordered middleware applied to every invocation before its handler runs."""

from __future__ import annotations

import argparse
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from skyctl.config import read_raw_config
from skyctl.domain.commands import CommandDefinition, CommandPath, format_command_path
from skyctl.domain.errors import CommandLineArgsError, UserError
from skyctl.settings import RuntimeSettings
from skyctl.utils.env_overlay import load_dot_env, merge_missing
from skyctl.utils.logger import debug_log_filepath, logger, set_logger_level
from skyctl.utils.output import write_output
from skyctl.utils.reporting import ExceptionReporter
from skyctl.utils.telemetry import MetricsDispatcher, get_metrics_dispatcher

# Commands that may receive --config more than once (e.g. multi-worker dev sessions).
MULTI_CONFIG_COMMANDS: tuple[CommandPath, ...] = (("dev",), ("pages", "dev"))

REDACTED = "<REDACTED>"


@dataclass
class InvocationContext:
    """State for a single CLI run, threaded through every middleware."""

    argv: List[str]
    settings: RuntimeSettings
    reporter: ExceptionReporter
    start_time: float = field(default_factory=time.monotonic)
    global_options: argparse.Namespace | None = None
    args: argparse.Namespace | None = None
    cwd: Path | None = None
    env_name: str | None = None
    env_injected: List[str] = field(default_factory=list)
    config_paths: List[Path] = field(default_factory=list)
    command: str | None = None
    args_snapshot: Dict[str, Any] | None = None
    recorded_once: bool = False
    dispatcher: MetricsDispatcher | None = None
    dispatcher_factory: Callable[..., MetricsDispatcher] | None = None
    warned_deprecations: set[CommandPath] = field(default_factory=set)

    @property
    def command_path(self) -> CommandPath:
        from skyctl.cli.parser import PATH_ATTR

        return tuple(getattr(self.args, PATH_ATTR, ()) or ())

    @property
    def config_path(self) -> Path | None:
        return self.config_paths[0] if self.config_paths else None

    @property
    def duration_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000


Middleware = Callable[[InvocationContext], None]


def demand_single_value(name: str, values: Sequence[str] | None, *, allow_multiple: bool = False) -> str | None:
    if not values:
        return None
    if len(values) > 1 and not allow_multiple:
        joined = ", ".join(values)
        raise CommandLineArgsError(
            f'The argument "--{name}" expects a single value, but received multiple: {joined}.',
            telemetry_message=f"multiple values for --{name}",
        )
    return values[0]


def _option(context: InvocationContext, name: str) -> Any:
    return getattr(context.global_options, name, None) if context.global_options is not None else None


def apply_cwd_override(context: InvocationContext) -> None:
    target = demand_single_value("cwd", _option(context, "cwd"))
    if target:
        path = Path(target).expanduser()
        if not path.is_dir():
            raise UserError(f"The directory {target} passed to --cwd does not exist.")
        os.chdir(path)
    context.cwd = Path.cwd()


def merge_env_overlay(context: InvocationContext) -> None:
    context.env_name = demand_single_value("env", _option(context, "env"))
    cwd = context.cwd or Path.cwd()
    values = load_dot_env(cwd / ".env", context.env_name)
    context.env_injected = merge_missing(values)


def record_session(context: InvocationContext) -> None:
    try:
        write_output(
            context.settings,
            {
                "type": "skyctl-session",
                "version": 1,
                "skyctl_version": context.settings.cli_version,
                "command_line_args": list(context.argv),
                "log_file_path": str(debug_log_filepath(context.settings)),
            },
        )
    except Exception as exc:  # noqa: BLE001
        logger.debug("Session recording failed: %s", exc)


def validate_single_values(context: InvocationContext) -> None:
    path = context.command_path
    allow = any(path[: len(prefix)] == prefix for prefix in MULTI_CONFIG_COMMANDS)
    configs = _option(context, "config") or []
    demand_single_value("config", configs, allow_multiple=allow)
    context.config_paths = [Path(value).expanduser() for value in configs]
    demand_single_value("env", _option(context, "env"))


def apply_log_level(context: InvocationContext) -> None:
    level = _option(context, "log_level")
    if level:
        set_logger_level(context.settings, level)


def snapshot_args(args: argparse.Namespace | None) -> Dict[str, Any]:
    """Keep flags and numbers; free-form strings never leave the machine."""

    snapshot: Dict[str, Any] = {}
    if args is None:
        return snapshot
    for key, value in vars(args).items():
        if key.startswith("_") or value is None:
            continue
        if isinstance(value, (bool, int, float)):
            snapshot[key] = value
        else:
            snapshot[key] = REDACTED
    return snapshot


def record_command_once(context: InvocationContext) -> None:
    if context.recorded_once:
        return
    context.recorded_once = True
    try:
        raw_config, config_path = read_raw_config(context.config_path, cwd=context.cwd)
        send_metrics = raw_config.get("send_metrics")
        factory = context.dispatcher_factory or get_metrics_dispatcher
        context.dispatcher = factory(
            context.settings,
            send_metrics=send_metrics if isinstance(send_metrics, bool) else None,
            has_config=config_path is not None,
        )
    except Exception as exc:  # noqa: BLE001
        logger.debug("Failed to read config; telemetry disabled for this run: %s", exc)
    context.command = format_command_path(context.command_path)
    context.args_snapshot = snapshot_args(context.args)
    context.reporter.add_breadcrumb(context.command)
    if context.dispatcher is not None:
        context.dispatcher.send_command_event(
            "started",
            {"command": context.command, "args": context.args_snapshot},
        )


DEFAULT_MIDDLEWARE: tuple[Middleware, ...] = (
    apply_cwd_override,
    merge_env_overlay,
    record_session,
    validate_single_values,
    apply_log_level,
    record_command_once,
)


def invoke_handler(context: InvocationContext) -> int:
    from skyctl.cli.parser import DEFINITION_ATTR, HANDLER_ATTR

    definition = getattr(context.args, DEFINITION_ATTR, None)
    if isinstance(definition, CommandDefinition) and definition.metadata.deprecated:
        path = context.command_path
        if path not in context.warned_deprecations:
            context.warned_deprecations.add(path)
            message = definition.metadata.deprecated_message or (
                f'"{format_command_path(path)}" is deprecated and will be removed in a future release.'
            )
            logger.warning(message)
    handler = getattr(context.args, HANDLER_ATTR)
    result = handler(context.args, context)
    return int(result or 0)


def run_pipeline(context: InvocationContext, middleware: Sequence[Middleware] = DEFAULT_MIDDLEWARE) -> int:
    for step in middleware:
        step(context)
    return invoke_handler(context)
