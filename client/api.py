"""
client/api.py -- Thin HTTP client for the Readivine auth endpoints.

Responses use the server envelope {statusCode, data, message, success}. Only
the fields the client acts on are read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger("readivine.client.api")

REQUEST_TIMEOUT = 30
ACCESS_COOKIE = "accessToken"


@dataclass(frozen=True)
class StatusResult:
    authenticated: bool
    user: dict[str, Any] | None = None


class ReadivineApiClient:
    """Calls /auth/status and /auth/logout with cookie credentials.

    The requests.Session plays the role of the browser cookie jar: the
    server's Set-Cookie and clear-cookie headers apply to it directly. A CLI
    that obtained an access token elsewhere can seed it with access_token.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        access_token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        if access_token:
            self.session.cookies.set(ACCESS_COOKIE, access_token)

    def login_url(self, provider: str = "github") -> str:
        return f"{self.base_url}/auth/{provider}"

    def status(self) -> StatusResult:
        """Ask the server whether the session cookie is valid.

        401 means "not logged in" and is not an error. Other non-2xx statuses
        raise requests.HTTPError; transport failures raise the underlying
        requests exception.
        """
        resp = self.session.get(f"{self.base_url}/auth/status", timeout=self.timeout)
        if resp.status_code == 401:
            return StatusResult(authenticated=False)
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data") or {}
        if body.get("success") and data.get("authenticated"):
            return StatusResult(authenticated=True, user=data.get("user"))
        return StatusResult(authenticated=False)

    def logout(self) -> None:
        resp = self.session.post(f"{self.base_url}/auth/logout", timeout=self.timeout)
        resp.raise_for_status()
        logger.debug("Server logout acknowledged (%d)", resp.status_code)
