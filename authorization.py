"""Authorization check for the speech recognition provider."""

from __future__ import annotations

import os
from typing import Callable

from models import AuthorizationStatus

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore


class ApiKeyAuthorizer:
    """Authorized once the SDK is importable and an API key is configured."""

    def __init__(self, api_key: str | Callable[[], str] = "") -> None:
        self._api_key = api_key

    def request_authorization(self) -> AuthorizationStatus:
        if dashscope is None:
            return AuthorizationStatus.RESTRICTED
        key = self._api_key() if callable(self._api_key) else self._api_key
        key = key or os.getenv("DASHSCOPE_API_KEY", "")
        if not key:
            return AuthorizationStatus.NOT_DETERMINED
        if not key.strip().startswith("sk-"):
            return AuthorizationStatus.DENIED
        return AuthorizationStatus.AUTHORIZED
