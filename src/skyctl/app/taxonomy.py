"""Classify and render failures that escape a command handler.

Every error reaching the top level is sorted into exactly one ``ErrorKind``.
The kinds are checked in declaration order, so the first match wins.
"""

from __future__ import annotations

import sys
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from skyctl.api.auth import ApiToken, get_auth_from_env
from skyctl.domain.errors import (
    APIError,
    BuildFailure,
    CommandLineArgsError,
    ErrorEvent,
    FatalError,
    JsonFriendlyFatalError,
    Note,
    ParseError,
    UserError,
    format_message,
)
from skyctl.settings import ISSUE_TRACKER_URL
from skyctl.utils.logger import log, log_build_failure, log_possible_bug_message, logger

if TYPE_CHECKING:  # pragma: no cover
    from skyctl.app.pipeline import InvocationContext

AUTHENTICATION_ERROR_CODE = 10000
RAW_MODE_MARKER = "Raw mode is not supported on"


class ErrorKind(str, Enum):
    ARGUMENT = "argument"
    AUTHENTICATION = "authentication"
    PARSE = "parse"
    FATAL = "fatal"
    UNSUPPORTED_TERMINAL = "unsupported_terminal"
    BUILD_FAILURE = "build_failure"
    USER = "user"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    error: BaseException
    subject: BaseException
    reportable: bool
    telemetry_error_type: str
    telemetry_message: str | None
    exit_code: int


def unwrap_lifecycle_error(error: BaseException) -> BaseException:
    """Return the cause of an ``ErrorEvent`` of type ``"error"``; anything else unchanged."""

    if isinstance(error, ErrorEvent) and error.type == "error" and error.cause is not None:
        return error.cause
    return error


def is_authentication_error(error: BaseException) -> bool:
    return isinstance(error, ParseError) and getattr(error, "code", None) == AUTHENTICATION_ERROR_CODE


def is_build_failure_from_cause(error: BaseException) -> bool:
    cause = error.__cause__ or getattr(error, "cause", None)
    return isinstance(cause, BuildFailure)


def _kind_of(subject: BaseException) -> ErrorKind:
    if isinstance(subject, CommandLineArgsError):
        return ErrorKind.ARGUMENT
    if is_authentication_error(subject):
        return ErrorKind.AUTHENTICATION
    if isinstance(subject, ParseError):
        return ErrorKind.PARSE
    if isinstance(subject, JsonFriendlyFatalError):
        return ErrorKind.FATAL
    if RAW_MODE_MARKER in str(subject):
        return ErrorKind.UNSUPPORTED_TERMINAL
    if isinstance(subject, BuildFailure) or is_build_failure_from_cause(subject):
        return ErrorKind.BUILD_FAILURE
    if isinstance(subject, UserError):
        return ErrorKind.USER
    return ErrorKind.UNKNOWN


def _reportable(kind: ErrorKind, subject: BaseException) -> bool:
    if kind is ErrorKind.PARSE:
        return bool(getattr(subject, "reportable", False))
    if kind is ErrorKind.UNKNOWN:
        return not (isinstance(subject, APIError) and not subject.reportable)
    return False


def _telemetry_error_type(kind: ErrorKind, subject: BaseException) -> str:
    if kind is ErrorKind.AUTHENTICATION:
        return "AuthenticationError"
    if kind is ErrorKind.BUILD_FAILURE:
        return "BuildFailure"
    return type(subject).__name__


def classify_error(error: BaseException) -> ClassifiedError:
    subject = unwrap_lifecycle_error(error)
    kind = _kind_of(subject)
    exit_code = 1
    if kind in (ErrorKind.FATAL, ErrorKind.USER) and isinstance(subject, FatalError):
        exit_code = subject.code
    return ClassifiedError(
        kind=kind,
        error=error,
        subject=subject,
        reportable=_reportable(kind, subject),
        telemetry_error_type=_telemetry_error_type(kind, subject),
        telemetry_message=subject.telemetry_message if isinstance(subject, UserError) else None,
        exit_code=exit_code,
    )


def _terminal_hint() -> str:
    if sys.platform == "win32":
        return (
            "Interactive input is unavailable in this terminal. On Windows, try running skyctl from "
            "PowerShell or the Windows Terminal instead of a mintty-based shell."
        )
    if sys.platform == "darwin":
        return "Interactive input is unavailable in this terminal. Try running skyctl from Terminal.app."
    return "Interactive input is unavailable in this terminal. Try running skyctl from a different terminal."


def _log_debug_traceback(error: BaseException) -> None:
    logger.debug("".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip())


def handle_error(
    error: BaseException,
    context: "InvocationContext",
    *,
    show_help: Callable[[], None],
    identity_lookup: Callable[[str | None], object] | None = None,
) -> ClassifiedError:
    """Render ``error`` for the operator and forward it to the reporter when reportable."""

    classified = classify_error(error)
    subject = classified.subject
    log()

    if classified.kind is ErrorKind.ARGUMENT:
        logger.error("%s", subject)
        show_help()
    elif classified.kind is ErrorKind.AUTHENTICATION:
        log(format_message(subject))  # type: ignore[arg-type]
        if isinstance(get_auth_from_env(), ApiToken):
            log(
                "It looks like you are authenticating via an API token set in an environment variable. "
                "Please ensure it has the correct permissions for this operation."
            )
        if identity_lookup is not None:
            try:
                identity_lookup(getattr(subject, "account_tag", None))
            except Exception as exc:  # noqa: BLE001
                logger.debug("Identity lookup failed: %s", exc)
    elif classified.kind is ErrorKind.PARSE:
        note = Note(text=f"If you think this is a bug, please open an issue at: {ISSUE_TRACKER_URL}")
        subject.notes.append(note)  # type: ignore[attr-defined]
        log(format_message(subject))  # type: ignore[arg-type]
    elif classified.kind is ErrorKind.FATAL:
        log(str(subject))
    elif classified.kind is ErrorKind.UNSUPPORTED_TERMINAL:
        logger.error("%s", subject)
        log(_terminal_hint())
    elif classified.kind is ErrorKind.BUILD_FAILURE:
        failure = subject if isinstance(subject, BuildFailure) else (subject.__cause__ or getattr(subject, "cause", None))
        log_build_failure(getattr(failure, "errors", []), getattr(failure, "warnings", []))
    else:
        logger.error("%s", subject)
        _log_debug_traceback(subject)
        if classified.kind is ErrorKind.UNKNOWN:
            log_possible_bug_message()

    if classified.reportable:
        context.reporter.capture_exception(subject)
    return classified
