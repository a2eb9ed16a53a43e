"""
api/routes/v1/auth.py -- GitHub OAuth login, session status and logout.

Routes:
  GET  /api/v1/auth/status              -- current session (requires auth)
  POST /api/v1/auth/logout              -- invalidate refresh token, clear cookies (requires auth)
  GET  /api/v1/auth/{provider}          -- 302 to the provider consent page
  GET  /api/v1/auth/{provider}/callback -- code -> session -> cookies -> 302 to frontend

Registration order: /auth/status must be registered before /auth/{provider}
or FastAPI captures "status" as a provider name.

Callback error policy:
  The browser is mid-navigation during the callback, so provider-side failures
  (GitHub reported an error, token exchange failed, profile or email fetch
  failed, user could not be saved) answer with another 302, to the frontend
  login page with ?error=oauth_failed&details=<code>. Only a missing code
  (400) and a broken server configuration (500) produce JSON.

Security:
  [H2] Both public endpoints are rate-limited per IP (Settings.oauth_rate_limit).
  [M5] Cache-Control: no-store on the response that carries session cookies.
  Cookies are set and cleared through auth.cookies, which derives both from one
  options function -- a clear with different attributes is silently ignored.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import OAUTH_LIMIT, limiter
from api.models import ApiResponse, AuthStatus, UserOut
from auth.cookies import clear_session_cookies, set_session_cookies, validate_cookie_environment
from auth.dependencies import get_current_user
from auth.models import User
from auth.oauth import GitHubOAuthClient
from auth.sessions import find_or_create_user, issue_session
from auth.store import UserStore
from core.config import get_settings
from core.errors import BadRequest, InternalError, UpstreamError

logger = logging.getLogger("readivine.api.auth")

# Auth policy:
# - GET  /api/v1/auth/status:               requires auth (get_current_user)
# - POST /api/v1/auth/logout:               requires auth (get_current_user)
# - GET  /api/v1/auth/{provider}:           public -- starts the login
# - GET  /api/v1/auth/{provider}/callback:  public -- GitHub redirects here
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _oauth_client(request: Request, provider: str) -> GitHubOAuthClient:
    client: GitHubOAuthClient = request.app.state.github_oauth
    if provider != client.provider:
        raise HTTPException(status_code=404, detail=f"Unknown OAuth provider: {provider}")
    return client


def _login_error_redirect(details: str) -> RedirectResponse:
    query = urlencode({"error": "oauth_failed", "details": details})
    return RedirectResponse(f"{get_settings().frontend_base_url}/login?{query}", status_code=302)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/status")
def auth_status(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Return the authenticated user. The negative case is the dependency's 401."""
    status = AuthStatus(authenticated=True, user=UserOut.from_user(current_user))
    return JSONResponse(
        content=ApiResponse(data=status.model_dump(by_alias=True), message="User is authenticated.").dump()
    )


@router.post("/auth/logout")
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Invalidate the stored refresh token and clear both session cookies."""
    user_store: UserStore = request.app.state.user_store
    user_store.clear_refresh_token(current_user.id)
    logger.info("User %s logged out", current_user.id)

    resp = JSONResponse(content=ApiResponse(data={}, message="User logged out successfully.").dump())
    clear_session_cookies(resp, get_settings().is_production)
    return resp


# ---------------------------------------------------------------------------
# Public OAuth endpoints
# ---------------------------------------------------------------------------


@limiter.limit(OAUTH_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.get("/auth/{provider}")
def oauth_redirect(request: Request, provider: str) -> RedirectResponse:
    """Redirect the browser to the provider's consent page.

    authorize_url() raises ConfigError (500) when the client id or callback
    URL is missing, so a misconfigured server never sends the user off-site.
    """
    client = _oauth_client(request, provider)
    return RedirectResponse(client.authorize_url(), status_code=302)


@limiter.limit(OAUTH_LIMIT)  # [H2]
@router.get("/auth/{provider}/callback", name="oauth_callback")
def oauth_callback(
    request: Request,
    provider: str,
    code: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Handle the provider callback and start a session.

    Flow:
      1. Provider reported an error (e.g. user denied consent) -> 302 to login.
      2. No code -> 400.
      3. Cookie environment invalid -> 500 (ConfigError).
      4. Exchange code, fetch profile + primary email, find-or-create the user,
         issue the session. UpstreamError / InternalError -> 302 to login.
      5. Set both cookies and 302 to the frontend dashboard.
    """
    settings = get_settings()
    client = _oauth_client(request, provider)

    # Step 1
    if error:
        logger.warning("OAuth provider %r returned error %r", provider, error)
        return _login_error_redirect(error)

    # Step 2
    if not code:
        raise BadRequest("Authorization failed. No code provided.")

    # Step 3
    validate_cookie_environment(settings)

    # Step 4
    user_store: UserStore = request.app.state.user_store
    try:
        github_token = client.exchange_code_for_token(code)
        profile = client.fetch_provider_user(github_token)
        email = client.fetch_primary_email(github_token)
        user = find_or_create_user(user_store, profile, email, github_token)
        pair = issue_session(user_store, user.id)
    except (UpstreamError, InternalError) as exc:
        logger.error("OAuth callback failed for %r: %s", provider, exc.message)
        return _login_error_redirect(exc.code)

    # Step 5
    resp = RedirectResponse(f"{settings.frontend_base_url}/dashboard", status_code=302)
    set_session_cookies(resp, pair, settings.is_production)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("OAuth login succeeded (user_id=%s)", user.id)
    return resp
