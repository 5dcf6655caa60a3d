"""Top-level run boundary: dispatch, classify, emit telemetry, shut down."""

from __future__ import annotations

import errno
import os
from typing import Callable, Sequence

from skyctl.app.pipeline import DEFAULT_MIDDLEWARE, InvocationContext, Middleware, run_pipeline
from skyctl.app.taxonomy import ClassifiedError, handle_error
from skyctl.settings import RuntimeSettings
from skyctl.utils.logger import logger
from skyctl.utils.reporting import ExceptionReporter
from skyctl.utils.telemetry import MetricsDispatcher

DRAIN_TIMEOUT = 1.0
IPC_FD_ENV = "SKYCTL_IPC_FD"


class IpcChannel:
    """File descriptor a parent process passes down to learn when skyctl is done."""

    def __init__(self, fd: int | None) -> None:
        self.fd = fd
        self.closed = fd is None

    @classmethod
    def from_env(cls) -> "IpcChannel":
        raw = os.environ.get(IPC_FD_ENV, "").strip()
        if not raw.isdigit():
            return cls(None)
        return cls(int(raw))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            os.close(self.fd)  # type: ignore[arg-type]
        except OSError as exc:
            if exc.errno != errno.EBADF:
                raise


def _duration_properties(context: InvocationContext) -> dict:
    duration_ms = context.duration_ms
    return {
        "durationMs": duration_ms,
        "durationSeconds": duration_ms / 1000,
        "durationMinutes": duration_ms / 60000,
    }


def emit_completed(context: InvocationContext) -> None:
    if context.dispatcher is None:
        return
    context.dispatcher.send_command_event(
        "completed",
        {"command": context.command, "args": context.args_snapshot, **_duration_properties(context)},
    )


def emit_errored(context: InvocationContext, classified: ClassifiedError) -> None:
    if context.dispatcher is None:
        return
    context.dispatcher.send_command_event(
        "errored",
        {
            "command": context.command,
            "args": context.args_snapshot,
            **_duration_properties(context),
            "errorType": classified.telemetry_error_type,
            "errorMessage": classified.telemetry_message,
        },
    )


def shutdown(
    context: InvocationContext,
    *,
    ipc_channel: IpcChannel | None = None,
    raise_errors: bool = True,
    timeout: float = DRAIN_TIMEOUT,
) -> None:
    """Release resources once. Failures are logged and re-raised only when ``raise_errors``."""

    try:
        if ipc_channel is not None:
            ipc_channel.close()
        context.reporter.close()
    except Exception as exc:
        logger.error("Failed to shut down cleanly: %s", exc)
        if raise_errors:
            raise
    finally:
        if context.dispatcher is not None:
            context.dispatcher.drain(timeout)


def run_invocation(
    argv: Sequence[str],
    *,
    settings: RuntimeSettings,
    parser,
    reporter: ExceptionReporter | None = None,
    middleware: Sequence[Middleware] = DEFAULT_MIDDLEWARE,
    ipc_channel: IpcChannel | None = None,
    identity_lookup: Callable[[str | None], object] | None = None,
    dispatcher_factory: Callable[..., MetricsDispatcher] | None = None,
    drain_timeout: float = DRAIN_TIMEOUT,
) -> int:
    from skyctl.cli.parser import ParserExit

    reporter = reporter or ExceptionReporter(settings)
    reporter.setup()
    context = InvocationContext(
        argv=list(argv),
        settings=settings,
        reporter=reporter,
        dispatcher_factory=dispatcher_factory,
    )
    dispatch_failed = True
    exit_code = 0
    try:
        try:
            context.global_options, context.args = parser.parse(argv)
        except ParserExit as exc:
            dispatch_failed = False
            return exc.status
        exit_code = run_pipeline(context, middleware)
        dispatch_failed = False
        emit_completed(context)
    except Exception as error:
        classified = handle_error(
            error,
            context,
            show_help=lambda: parser.show_contextual_help(argv),
            identity_lookup=identity_lookup,
        )
        emit_errored(context, classified)
        exit_code = classified.exit_code
    finally:
        shutdown(
            context,
            ipc_channel=ipc_channel if ipc_channel is not None else IpcChannel.from_env(),
            raise_errors=not dispatch_failed,
            timeout=drain_timeout,
        )
    return exit_code
