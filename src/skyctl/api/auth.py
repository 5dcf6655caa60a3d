"""Credential resolution and identity lookup."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from skyctl.utils.logger import log

if TYPE_CHECKING:  # pragma: no cover
    from skyctl.api.client import ApiClient


@dataclass(frozen=True)
class ApiToken:
    api_token: str


@dataclass(frozen=True)
class GlobalKey:
    auth_key: str
    auth_email: str


Auth = Union[ApiToken, GlobalKey]


def get_auth_from_env() -> Auth | None:
    token = os.environ.get("SKYCTL_API_TOKEN", "").strip()
    if token:
        return ApiToken(api_token=token)
    key = os.environ.get("SKYCTL_API_KEY", "").strip()
    email = os.environ.get("SKYCTL_EMAIL", "").strip()
    if key and email:
        return GlobalKey(auth_key=key, auth_email=email)
    return None


@dataclass
class UserInfo:
    auth_type: str
    email: str | None = None
    accounts: list[dict[str, Any]] = field(default_factory=list)


def get_user_info(client: "ApiClient") -> UserInfo | None:
    auth = get_auth_from_env()
    if auth is None:
        return None
    auth_type = "API Token" if isinstance(auth, ApiToken) else "Global API Key"
    user = client.fetch_result("/user") or {}
    accounts = client.fetch_result("/accounts") or []
    return UserInfo(
        auth_type=auth_type,
        email=user.get("email") if isinstance(user, dict) else None,
        accounts=[account for account in accounts if isinstance(account, dict)],
    )


def whoami(client: "ApiClient", account_tag: str | None = None) -> UserInfo | None:
    info = get_user_info(client)
    if info is None:
        log("You are not authenticated. Set SKYCTL_API_TOKEN to log in.")
        return None
    who = f"the email {info.email}" if info.email else "an API Token"
    log(f"You are logged in with {info.auth_type}, associated with {who}.")
    if info.accounts:
        log("Accounts:")
        for account in info.accounts:
            log(f"  {account.get('name', '-')}\t{account.get('id', '-')}")
    if account_tag and not any(account.get("id") == account_tag for account in info.accounts):
        log(f"Your credentials do not have access to the account with id {account_tag}.")
    return info
