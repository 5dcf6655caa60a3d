"""HTTP client for the remote account API."""

from __future__ import annotations

import os
from typing import Any, Dict

import requests

from skyctl.api.auth import ApiToken, Auth, GlobalKey, get_auth_from_env
from skyctl.domain.errors import APIError, Note, UserError
from skyctl.settings import RuntimeSettings
from skyctl.utils.logger import log

PROXY_ENV_VARS = ("SKYCTL_HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "http_proxy", "HTTP_PROXY")
DEFAULT_TIMEOUT = 30

_proxy_notice_shown = False


def resolve_proxy() -> str | None:
    for name in PROXY_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def build_session() -> requests.Session:
    global _proxy_notice_shown
    session = requests.Session()
    proxy = resolve_proxy()
    if proxy:
        session.proxies.update({"http": proxy, "https": proxy})
        if not _proxy_notice_shown:
            _proxy_notice_shown = True
            log("Proxy environment variables detected. We'll use your proxy for fetch requests.")
    return session


class ApiClient:
    def __init__(
        self,
        settings: RuntimeSettings,
        *,
        auth: Auth | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._auth = auth
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = build_session()
        return self._session

    def _headers(self) -> Dict[str, str]:
        auth = self._auth or get_auth_from_env()
        if auth is None:
            raise UserError(
                "Not logged in. Set SKYCTL_API_TOKEN (or SKYCTL_API_KEY and SKYCTL_EMAIL) to authenticate."
            )
        headers = {"User-Agent": f"skyctl/{self._settings.cli_version}"}
        if isinstance(auth, ApiToken):
            headers["Authorization"] = f"Bearer {auth.api_token}"
        elif isinstance(auth, GlobalKey):
            headers["X-Auth-Key"] = auth.auth_key
            headers["X-Auth-Email"] = auth.auth_email
        return headers

    def fetch_result(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Dict[str, Any] | None = None,
        json: Any = None,
        account_tag: str | None = None,
    ) -> Any:
        url = self._settings.api_base_url.rstrip("/") + "/" + path.lstrip("/")
        response = self.session.request(
            method,
            url,
            params=params,
            json=json,
            headers=self._headers(),
            timeout=DEFAULT_TIMEOUT,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise APIError(
                f"Received a malformed response from the API ({method} {url})",
                status=response.status_code,
                account_tag=account_tag,
                notes=[Note(text=response.text[:500])],
            ) from exc
        if isinstance(payload, dict) and payload.get("success"):
            return payload.get("result")
        raise _api_error(method, url, response.status_code, payload, account_tag)


def _api_error(method: str, url: str, status: int, payload: Any, account_tag: str | None) -> APIError:
    errors = payload.get("errors", []) if isinstance(payload, dict) else []
    notes = []
    code = None
    for error in errors:
        if not isinstance(error, dict):
            continue
        if code is None:
            code = error.get("code")
        notes.append(Note(text=f"{error.get('message', 'Unknown error')} [code: {error.get('code')}]"))
    return APIError(
        f"A request to the API ({method} {url}) failed.",
        status=status,
        code=code,
        account_tag=account_tag,
        notes=notes,
        reportable=status >= 500,
    )
