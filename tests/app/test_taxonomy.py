from __future__ import annotations

import pytest

from skyctl.app.pipeline import InvocationContext
from skyctl.app.taxonomy import ErrorKind, classify_error, handle_error, unwrap_lifecycle_error
from skyctl.domain.errors import (
    APIError,
    BuildFailure,
    BuildMessage,
    CommandLineArgsError,
    ErrorEvent,
    FatalError,
    JsonFriendlyFatalError,
    ParseError,
    UserError,
)
from skyctl.utils.reporting import ExceptionReporter


@pytest.fixture
def context(runtime_settings):
    reporter = ExceptionReporter(runtime_settings, enabled=True)
    reporter.setup()
    return InvocationContext(argv=[], settings=runtime_settings, reporter=reporter)


def _build_error_with_cause():
    try:
        try:
            raise BuildFailure("bundle failed", errors=[BuildMessage(text="Could not resolve ./missing")])
        except BuildFailure as failure:
            raise RuntimeError("deploy failed") from failure
    except RuntimeError as error:
        return error


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (CommandLineArgsError("bad flag"), ErrorKind.ARGUMENT),
        (APIError("auth failed", code=10000), ErrorKind.AUTHENTICATION),
        (ParseError("auth-ish", kind="error"), ErrorKind.PARSE),
        (APIError("server error", code=7003), ErrorKind.PARSE),
        (JsonFriendlyFatalError('{"ok": false}', 2), ErrorKind.FATAL),
        (RuntimeError("Raw mode is not supported on the current process.stdin"), ErrorKind.UNSUPPORTED_TERMINAL),
        (BuildFailure("bundle failed"), ErrorKind.BUILD_FAILURE),
        (_build_error_with_cause(), ErrorKind.BUILD_FAILURE),
        (UserError("bad input"), ErrorKind.USER),
        (FatalError("no project", 4), ErrorKind.USER),
        (RuntimeError("boom"), ErrorKind.UNKNOWN),
    ],
)
def test_classification_precedence(error, kind):
    assert classify_error(error).kind is kind


def test_first_match_wins_for_user_error_with_raw_mode_message():
    # A UserError mentioning raw mode is still an unsupported-terminal failure.
    assert classify_error(UserError("Raw mode is not supported on this TTY")).kind is ErrorKind.UNSUPPORTED_TERMINAL


def test_unwrap_lifecycle_error():
    cause = UserError("port in use")
    assert unwrap_lifecycle_error(ErrorEvent("dev server", cause)) is cause
    other = ErrorEvent("dev server", cause, type="exit")
    assert unwrap_lifecycle_error(other) is other
    plain = RuntimeError("x")
    assert unwrap_lifecycle_error(plain) is plain


def test_wrapped_user_error_classified_by_cause():
    classified = classify_error(ErrorEvent("dev server", UserError("port in use", telemetry_message=True)))
    assert classified.kind is ErrorKind.USER
    assert classified.telemetry_error_type == "UserError"
    assert classified.telemetry_message == "port in use"


def test_reportability():
    assert classify_error(RuntimeError("boom")).reportable is True
    assert classify_error(UserError("bad input")).reportable is False
    assert classify_error(ParseError("bad")).reportable is False
    assert classify_error(APIError("not found", status=404, reportable=False)).reportable is False
    assert classify_error(APIError("bad gateway", status=502)).reportable is True


def test_exit_codes():
    assert classify_error(JsonFriendlyFatalError("{}", 7)).exit_code == 7
    assert classify_error(FatalError("Must specify a project name in non-interactive mode.", 1)).exit_code == 1
    assert classify_error(FatalError("stop", 5)).exit_code == 5
    assert classify_error(RuntimeError("boom")).exit_code == 1
    assert classify_error(CommandLineArgsError("bad")).exit_code == 1


def test_telemetry_error_type_labels():
    assert classify_error(APIError("auth", code=10000)).telemetry_error_type == "AuthenticationError"
    assert classify_error(_build_error_with_cause()).telemetry_error_type == "BuildFailure"
    assert classify_error(RuntimeError("boom")).telemetry_error_type == "RuntimeError"


def test_unknown_error_logs_bug_hint_and_reports(context, capsys):
    classified = handle_error(RuntimeError("boom"), context, show_help=lambda: None)
    err = capsys.readouterr().err
    assert "[ERROR] boom" in err
    assert "This may be a bug in skyctl" in err
    assert classified.reportable is True
    assert [report["message"] for report in context.reporter.pending] == ["boom"]


def test_user_error_has_no_bug_hint(context, capsys):
    classified = handle_error(UserError("bad input"), context, show_help=lambda: None)
    err = capsys.readouterr().err
    assert "[ERROR] bad input" in err
    assert "may be a bug" not in err
    assert classified.reportable is False
    assert context.reporter.pending == ()


def test_argument_error_shows_help(context, capsys):
    shown = []
    handle_error(CommandLineArgsError("Unknown command: nope."), context, show_help=lambda: shown.append(True))
    assert shown == [True]
    assert "Unknown command: nope." in capsys.readouterr().err


def test_authentication_error_runs_identity_lookup(context, capsys):
    seen = []
    error = APIError("A request to the API failed.", code=10000, account_tag="abc123")
    handle_error(error, context, show_help=lambda: None, identity_lookup=seen.append)
    out = capsys.readouterr().out
    assert "A request to the API failed." in out
    assert "environment variable" not in out
    assert seen == ["abc123"]


def test_authentication_error_with_env_token_asks_for_permissions(context, capsys, monkeypatch):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "tok")
    handle_error(APIError("auth", code=10000), context, show_help=lambda: None)
    out = capsys.readouterr().out
    assert "API token set in an environment variable" in out
    assert "correct permissions for this operation" in out


def test_authentication_error_with_env_global_key_has_no_token_hint(context, capsys, monkeypatch):
    monkeypatch.setenv("SKYCTL_API_KEY", "key")
    monkeypatch.setenv("SKYCTL_EMAIL", "ops@example.test")
    handle_error(APIError("auth", code=10000), context, show_help=lambda: None)
    assert "permissions" not in capsys.readouterr().out


def test_identity_lookup_failure_is_swallowed(context):
    def lookup(tag):
        raise RuntimeError("network down")

    classified = handle_error(APIError("auth", code=10000), context, show_help=lambda: None, identity_lookup=lookup)
    assert classified.kind is ErrorKind.AUTHENTICATION


def test_parse_error_gets_issue_note(context, capsys):
    error = ParseError("Could not parse skyctl.yaml")
    handle_error(error, context, show_help=lambda: None)
    out = capsys.readouterr().out
    assert "[ERROR] Could not parse skyctl.yaml" in out
    assert "please open an issue" in out


def test_fatal_error_printed_verbatim(context, capsys):
    handle_error(JsonFriendlyFatalError('{"error": "nope"}', 2), context, show_help=lambda: None)
    captured = capsys.readouterr()
    assert '{"error": "nope"}' in captured.out
    assert "[ERROR]" not in captured.err


def test_build_failure_lists_diagnostics(context, capsys):
    handle_error(_build_error_with_cause(), context, show_help=lambda: None)
    err = capsys.readouterr().err
    assert "Build failed with 1 error:" in err
    assert "Could not resolve ./missing" in err


def test_unsupported_terminal_hint(context, capsys, monkeypatch):
    monkeypatch.setattr("skyctl.app.taxonomy.sys.platform", "win32")
    handle_error(RuntimeError("Raw mode is not supported on stdin"), context, show_help=lambda: None)
    assert "PowerShell" in capsys.readouterr().out
