"""
auth/cookies.py -- Session cookie policy.

cookie_options() is the single source of truth for cookie attributes. Both
set_session_cookies() and clear_session_cookies() derive their attributes from
it, because browsers silently ignore a clearing Set-Cookie whose attributes
(path, secure, samesite) differ from the ones the cookie was set with.

Policy:
  httponly  always True -- JS cannot read session cookies (XSS mitigation).
  secure    True in production (HTTPS only).
  samesite  "none" in production, where the frontend and API live on
            different sites and the cookie must ride cross-site XHR; "lax" in
            development, where both run on localhost. samesite="none" without
            secure is rejected by browsers, so secure is forced on with it.
  path      "/".
  max_age   access: 8h dev / 7 days prod; refresh: 1 day dev / 10 days prod.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from core.errors import ConfigError

if TYPE_CHECKING:
    from starlette.responses import Response

    from auth.models import TokenPair
    from core.config import Settings

logger = logging.getLogger("readivine.auth.cookies")

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

_MAX_AGE = {
    # (kind, is_production) -> seconds
    ("access", False): 8 * 60 * 60,
    ("access", True): 7 * 24 * 60 * 60,
    ("refresh", False): 24 * 60 * 60,
    ("refresh", True): 10 * 24 * 60 * 60,
}


@dataclass(frozen=True)
class CookieOptions:
    httponly: bool
    secure: bool
    samesite: str
    path: str
    max_age: int


def cookie_options(is_production: bool, kind: str = "access") -> CookieOptions:
    """Return the cookie attributes for a token kind ("access" or "refresh")."""
    if kind not in ("access", "refresh"):
        raise ValueError(f"Unknown cookie kind: {kind!r}")
    samesite = "none" if is_production else "lax"
    secure = is_production or samesite == "none"
    return CookieOptions(
        httponly=True,
        secure=secure,
        samesite=samesite,
        path="/",
        max_age=_MAX_AGE[(kind, is_production)],
    )


def validate_cookie_environment(settings: Settings) -> None:
    """Fail with ConfigError if cross-site secure cookies cannot work.

    In production the frontend must be served over HTTPS: a secure,
    samesite=none cookie set for an http:// frontend is never sent back.
    """
    if not settings.is_production:
        logger.debug("Cookie environment: development (secure=False, samesite=lax)")
        return
    if not settings.frontend_url:
        logger.warning("FRONTEND_URL not set in production -- using default")
        return
    if not settings.frontend_url.startswith("https://"):
        logger.error("FRONTEND_URL must use HTTPS in production for secure cookies")
        raise ConfigError("Invalid frontend URL configuration for production.")


def set_session_cookies(response: Response, pair: TokenPair, is_production: bool) -> None:
    """Write both session cookies onto response."""
    for name, value, kind in (
        (ACCESS_COOKIE, pair.access_token, "access"),
        (REFRESH_COOKIE, pair.refresh_token, "refresh"),
    ):
        response.set_cookie(name, value=value, **asdict(cookie_options(is_production, kind)))


def clear_session_cookies(response: Response, is_production: bool) -> None:
    """Expire both session cookies using the attributes they were set with."""
    for name, kind in ((ACCESS_COOKIE, "access"), (REFRESH_COOKIE, "refresh")):
        opts = cookie_options(is_production, kind)
        response.delete_cookie(
            name,
            path=opts.path,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )
