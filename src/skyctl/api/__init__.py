"""Remote API access for skyctl commands."""

from .auth import ApiToken, GlobalKey, get_auth_from_env, whoami
from .client import ApiClient, build_session

__all__ = ["ApiClient", "ApiToken", "GlobalKey", "build_session", "get_auth_from_env", "whoami"]
