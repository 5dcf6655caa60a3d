from __future__ import annotations

import pytest

from skyctl.api import client as api_client
from skyctl.api.auth import ApiToken, GlobalKey, get_auth_from_env
from skyctl.api.client import ApiClient, build_session, resolve_proxy
from skyctl.app.taxonomy import ErrorKind, classify_error
from skyctl.cli import main as cli_main
from skyctl.domain.errors import APIError, UserError


class DummyResponse:
    def __init__(self, payload, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        path = url.split("/client/v4", 1)[1]
        return self.responses[(method, path)]


def _ok(result):
    return DummyResponse({"success": True, "errors": [], "result": result})


@pytest.fixture
def settings(monkeypatch, runtime_settings):
    monkeypatch.setattr(cli_main, "SETTINGS", runtime_settings)
    return runtime_settings


@pytest.fixture
def session(monkeypatch):
    dummy = DummySession({})
    monkeypatch.setattr(api_client, "build_session", lambda: dummy)
    return dummy


def test_auth_from_env(monkeypatch):
    assert get_auth_from_env() is None
    monkeypatch.setenv("SKYCTL_API_KEY", "key")
    monkeypatch.setenv("SKYCTL_EMAIL", "ops@example.test")
    assert get_auth_from_env() == GlobalKey(auth_key="key", auth_email="ops@example.test")
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    assert get_auth_from_env() == ApiToken(api_token="token")


def test_fetch_result_sends_bearer_token(runtime_settings):
    session = DummySession({("GET", "/user"): _ok({"email": "ops@example.test"})})
    client = ApiClient(runtime_settings, auth=ApiToken("secret"), session=session)
    assert client.fetch_result("/user") == {"email": "ops@example.test"}
    _, url, kwargs = session.calls[0]
    assert url == "https://api.example.test/client/v4/user"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"


def test_missing_credentials_is_user_error(runtime_settings):
    client = ApiClient(runtime_settings, session=DummySession({}))
    with pytest.raises(UserError, match="Not logged in"):
        client.fetch_result("/user")


def test_failed_request_raises_api_error(runtime_settings):
    payload = {"success": False, "errors": [{"code": 10000, "message": "Authentication error"}]}
    session = DummySession({("GET", "/accounts"): DummyResponse(payload, status_code=403)})
    client = ApiClient(runtime_settings, auth=ApiToken("expired"), session=session)
    with pytest.raises(APIError) as excinfo:
        client.fetch_result("/accounts", account_tag="abc")
    error = excinfo.value
    assert error.code == 10000
    assert error.account_tag == "abc"
    assert "Authentication error [code: 10000]" in error.notes[0].text
    assert classify_error(error).kind is ErrorKind.AUTHENTICATION


def test_server_error_reportable(runtime_settings):
    payload = {"success": False, "errors": [{"code": 7000, "message": "Internal"}]}
    session = DummySession({("GET", "/user"): DummyResponse(payload, status_code=503)})
    client = ApiClient(runtime_settings, auth=ApiToken("token"), session=session)
    with pytest.raises(APIError) as excinfo:
        client.fetch_result("/user")
    assert excinfo.value.reportable is True


def test_client_error_not_reportable(runtime_settings):
    payload = {"success": False, "errors": [{"code": 10007, "message": "Not found"}]}
    session = DummySession({("GET", "/accounts/acc-1/workers/scripts/gone"): DummyResponse(payload, status_code=404)})
    client = ApiClient(runtime_settings, auth=ApiToken("token"), session=session)
    with pytest.raises(APIError) as excinfo:
        client.fetch_result("/accounts/acc-1/workers/scripts/gone")
    assert excinfo.value.reportable is False
    assert classify_error(excinfo.value).reportable is False


def test_malformed_response(runtime_settings):
    session = DummySession({("GET", "/user"): DummyResponse(ValueError("no json"), status_code=502, text="<html>")})
    client = ApiClient(runtime_settings, auth=ApiToken("token"), session=session)
    with pytest.raises(APIError, match="malformed response"):
        client.fetch_result("/user")


def test_proxy_notice_logged_once(monkeypatch, capsys):
    monkeypatch.setattr(api_client, "_proxy_notice_shown", False)
    for name in api_client.PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HTTPS_PROXY", "http://proxy.internal:3128")
    assert resolve_proxy() == "http://proxy.internal:3128"
    session = build_session()
    build_session()
    assert session.proxies["https"] == "http://proxy.internal:3128"
    assert capsys.readouterr().out.count("Proxy environment variables detected") == 1


def test_whoami_lists_accounts(monkeypatch, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    session.responses.update(
        {
            ("GET", "/user"): _ok({"email": "ops@example.test"}),
            ("GET", "/accounts"): _ok([{"id": "acc-1", "name": "Ops"}]),
        }
    )
    assert cli_main.main(["whoami", "--account", "acc-2"]) == 0
    out = capsys.readouterr().out
    assert "associated with the email ops@example.test" in out
    assert "Ops\tacc-1" in out
    assert "do not have access to the account with id acc-2" in out


def test_whoami_unauthenticated(settings, session, capsys):
    assert cli_main.main(["whoami"]) == 0
    assert "You are not authenticated" in capsys.readouterr().out


def test_authentication_failure_runs_whoami(monkeypatch, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "expired")
    monkeypatch.setenv("SKYCTL_ACCOUNT_ID", "acc-1")
    denied = DummyResponse({"success": False, "errors": [{"code": 10000, "message": "Authentication error"}]}, 403)
    session.responses.update(
        {
            ("GET", "/accounts/acc-1/workers/scripts/api/deployments"): denied,
            ("GET", "/user"): _ok({"email": "ops@example.test"}),
            ("GET", "/accounts"): _ok([]),
        }
    )
    assert cli_main.main(["deployments", "list", "--name", "api"]) == 1
    out = capsys.readouterr().out
    assert "Authentication error [code: 10000]" in out
    assert "correct permissions for this operation" in out
    assert "You are logged in with API Token" in out
    assert "do not have access to the account with id acc-1" in out


def test_deployments_list(monkeypatch, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    monkeypatch.setenv("SKYCTL_ACCOUNT_ID", "acc-1")
    session.responses[("GET", "/accounts/acc-1/workers/scripts/api/deployments")] = _ok(
        {
            "deployments": [
                {
                    "id": "dep-1",
                    "created_on": "2026-10-01T10:00:00Z",
                    "author_email": "ops@example.test",
                    "versions": [{"version_id": "v-1", "percentage": 100}],
                }
            ]
        }
    )
    assert cli_main.main(["deployments", "list", "--name", "api"]) == 0
    out = capsys.readouterr().out
    assert "Deployment ID: dep-1" in out
    assert "v-1 (100%)" in out


def test_deployments_delete_requires_name_when_not_interactive(monkeypatch, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    monkeypatch.setenv("SKYCTL_ACCOUNT_ID", "acc-1")
    monkeypatch.setattr("skyctl.commands.deployments.is_interactive", lambda: False)
    assert cli_main.main(["deployments", "delete", "dep-1"]) == 1
    assert "Must specify a project name in non-interactive mode." in capsys.readouterr().err
    assert session.calls == []


def test_deployments_delete_prompts_when_interactive(monkeypatch, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    monkeypatch.setenv("SKYCTL_ACCOUNT_ID", "acc-1")
    monkeypatch.setattr("skyctl.commands.deployments.is_interactive", lambda: True)
    monkeypatch.setattr("builtins.input", lambda prompt="": "2")
    session.responses.update(
        {
            ("GET", "/accounts/acc-1/workers/scripts"): _ok([{"id": "api"}, {"id": "web"}]),
            ("DELETE", "/accounts/acc-1/workers/scripts/web/deployments/dep-1"): _ok(None),
        }
    )
    assert cli_main.main(["deployments", "delete", "dep-1"]) == 0
    assert "Deleted deployment dep-1 of web." in capsys.readouterr().out


def test_account_id_from_project_config(monkeypatch, tmp_path, settings, session, capsys):
    monkeypatch.setenv("SKYCTL_API_TOKEN", "token")
    (tmp_path / "project" / "skyctl.yaml").write_text("name: api\naccount_id: acc-9\n", encoding="utf-8")
    session.responses[("GET", "/accounts/acc-9/workers/scripts/api/deployments")] = _ok({"deployments": []})
    assert cli_main.main(["deployments", "list"]) == 0
    assert "No deployments found for api." in capsys.readouterr().out
