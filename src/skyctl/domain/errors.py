"""Error types shared by the dispatch core and command handlers."""

from __future__ import annotations

from dataclasses import dataclass


class RegistrationError(RuntimeError):
    """Raised when the command tree is declared or sealed incorrectly."""


class UserError(RuntimeError):
    """A failure caused by the user's input or environment rather than a bug.

    ``telemetry_message`` controls what may be sent with the errored event:
    ``True`` sends the message itself, a string sends that string instead,
    anything else sends nothing.
    """

    def __init__(self, message: str = "", *, telemetry_message: bool | str | None = None) -> None:
        super().__init__(message)
        self._telemetry_message = telemetry_message

    @property
    def telemetry_message(self) -> str | None:
        if self._telemetry_message is True:
            return str(self)
        if isinstance(self._telemetry_message, str):
            return self._telemetry_message
        return None


class CommandLineArgsError(UserError):
    """Argument validation failure; the CLI prints contextual help."""


class FatalError(UserError):
    def __init__(self, message: str = "", code: int = 1, *, telemetry_message: bool | str | None = None) -> None:
        super().__init__(message, telemetry_message=telemetry_message)
        self.code = code


class JsonFriendlyFatalError(FatalError):
    """A fatal error whose message is already the final output (e.g. JSON)."""


@dataclass
class Location:
    file: str | None = None
    line: int | None = None
    column: int | None = None
    line_text: str | None = None


@dataclass
class Note:
    text: str
    location: Location | None = None


class ParseError(UserError):
    """Structured error carrying notes, usually produced from API or file parsing."""

    def __init__(
        self,
        text: str,
        *,
        notes: list[Note] | None = None,
        location: Location | None = None,
        kind: str = "error",
        reportable: bool = False,
        telemetry_message: bool | str | None = None,
    ) -> None:
        super().__init__(text, telemetry_message=telemetry_message)
        self.text = text
        self.notes = list(notes or [])
        self.location = location
        self.kind = kind
        self.reportable = reportable


class APIError(ParseError):
    def __init__(
        self,
        text: str,
        *,
        status: int | None = None,
        code: int | None = None,
        account_tag: str | None = None,
        notes: list[Note] | None = None,
        reportable: bool = True,
        telemetry_message: bool | str | None = None,
    ) -> None:
        super().__init__(text, notes=notes, reportable=reportable, telemetry_message=telemetry_message)
        self.status = status
        self.code = code
        self.account_tag = account_tag


@dataclass
class BuildMessage:
    text: str
    location: Location | None = None


class BuildFailure(RuntimeError):
    """Raised by the bundler with the diagnostics it collected."""

    def __init__(self, message: str, *, errors: list[BuildMessage] | None = None, warnings: list[BuildMessage] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
        self.warnings = list(warnings or [])


class ErrorEvent(Exception):
    """Lifecycle error event raised by long-running sessions; the cause is what the user needs to see."""

    def __init__(self, source: str, cause: BaseException | None = None, *, type: str = "error", data: dict | None = None) -> None:
        super().__init__(f"{source} failed: {cause}")
        self.source = source
        self.cause = cause
        self.type = type
        self.data = dict(data or {})


def format_message(error: ParseError) -> str:
    lines = [f"[{error.kind.upper()}] {error.text}"]
    if error.location is not None:
        lines.extend(_format_location(error.location))
    for note in error.notes:
        lines.append("")
        lines.append(f"  {note.text}")
        if note.location is not None:
            lines.extend(f"  {line}" for line in _format_location(note.location))
    return "\n".join(lines) + "\n"


def _format_location(location: Location) -> list[str]:
    if not location.file:
        return []
    where = location.file
    if location.line is not None:
        where += f":{location.line}"
        if location.column is not None:
            where += f":{location.column}"
    lines = ["", f"    {where}:"]
    if location.line_text:
        lines.append(f"      {location.line_text}")
    return lines
