"""
auth/oauth.py -- GitHub OAuth 2.0 authorization-code exchange via authlib.

GitHubOAuthClient wraps authlib's requests-based OAuth2Session. It performs
exactly four provider interactions, none of them retried:

  authorize_url()              -- build the consent URL (no network).
  exchange_code_for_token()    -- POST /login/oauth/access_token.
  fetch_provider_user()        -- GET https://api.github.com/user.
  fetch_primary_email()        -- GET https://api.github.com/user/emails.

Every provider failure surfaces as UpstreamError carrying the provider's
status and message: an "error" field in the token response, a missing
access_token, a non-2xx status, a body that is not JSON or lacks the expected
fields, or an unreachable host. The callback route turns that into a redirect
to the frontend login page.

Security notes:
  The primary email is whichever entry GitHub flags primary. If none is
  flagged the login fails; we never guess a fallback address.

  Client id, secret and callback URL are read from core.config.get_settings()
  when the client is constructed. authorize_url() raises ConfigError when the
  client id or callback URL is missing, before any redirect is issued.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging

import requests
from authlib.integrations.requests_client import OAuth2Session, OAuthError

from auth.models import GitHubProfile
from core.config import Settings, get_settings
from core.errors import ConfigError, UpstreamError

logger = logging.getLogger("readivine.auth.oauth")

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"  # noqa: S105 -- URL, not a password
API_BASE_URL = "https://api.github.com"

_TIMEOUT = 10


class GitHubOAuthClient:
    """The GitHub side of the login flow.

    One instance lives on app.state.github_oauth for the process lifetime;
    tests replace it with a fake exposing the same four methods.
    """

    provider = "github"

    def __init__(self, settings: Settings | None = None) -> None:
        cfg = settings or get_settings()
        self.client_id = cfg.github_client_id
        self.client_secret = cfg.github_client_secret
        self.callback_url = cfg.github_callback_url
        self.scope = cfg.github_scopes

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.callback_url)

    def _session(self, token: str | None = None) -> OAuth2Session:
        kwargs: dict = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": self.scope,
            "redirect_uri": self.callback_url,
            "token_endpoint_auth_method": "client_secret_post",
        }
        if token is not None:
            kwargs["token"] = {"access_token": token, "token_type": "bearer"}
        return OAuth2Session(**kwargs)

    # ------------------------------------------------------------------
    # Authorization redirect
    # ------------------------------------------------------------------

    def authorize_url(self) -> str:
        """Return the GitHub consent URL for this app's client id, scopes and callback."""
        if not self.client_id:
            raise ConfigError("GitHub Client ID is not configured.")
        if not self.callback_url:
            raise ConfigError("GitHub callback URL is not configured.")
        url, _state = self._session().create_authorization_url(AUTHORIZE_URL)
        return url

    # ------------------------------------------------------------------
    # Code exchange
    # ------------------------------------------------------------------

    def exchange_code_for_token(self, code: str) -> str:
        """Trade an authorization code for a GitHub access token."""
        logger.info("Starting OAuth token exchange with GitHub (client_id configured=%s)", bool(self.client_id))
        try:
            token = self._session().fetch_token(ACCESS_TOKEN_URL, code=code, timeout=_TIMEOUT)
        except OAuthError as exc:
            logger.error("GitHub token exchange rejected: %s (%s)", exc.error, exc.description)
            raise UpstreamError(
                f"GitHub token exchange failed: {exc.error}",
                provider_message=exc.description or exc.error,
                code="token_exchange_failed",
            ) from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error("GitHub token endpoint returned HTTP %s", status)
            raise UpstreamError(
                "GitHub token exchange failed.",
                provider_status=status,
                provider_message=str(exc),
                code="token_exchange_failed",
            ) from exc
        except (requests.RequestException, ValueError) as exc:
            logger.error("GitHub token exchange failed: %s", exc)
            raise UpstreamError(
                "GitHub token exchange failed.",
                provider_message=str(exc),
                code="token_exchange_failed",
            ) from exc

        access_token = token.get("access_token") if token else None
        if not access_token:
            logger.error("GitHub token response did not include an access_token")
            raise UpstreamError(
                "GitHub token exchange failed: No access token received",
                code="token_exchange_failed",
            )
        logger.info("Successfully received access token from GitHub")
        return access_token

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def _get_json(self, token: str, path: str, error_code: str):
        url = f"{API_BASE_URL}/{path}"
        try:
            resp = self._session(token).get(url, headers={"Accept": "application/vnd.github+json"}, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            logger.error("GitHub request GET /%s failed: %s", path, exc)
            raise UpstreamError("Could not reach GitHub.", provider_message=str(exc), code=error_code) from exc
        if not resp.ok:
            message = _provider_message(resp)
            logger.error("GitHub GET /%s returned HTTP %d: %s", path, resp.status_code, message)
            raise UpstreamError(
                f"GitHub API error: {message}",
                provider_status=resp.status_code,
                provider_message=message,
                code=error_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("GitHub GET /%s returned a body that is not JSON", path)
            raise UpstreamError(
                "GitHub returned an unreadable response.",
                provider_status=resp.status_code,
                code=error_code,
            ) from exc

    def fetch_provider_user(self, token: str) -> GitHubProfile:
        """Fetch the authenticated user's GitHub profile."""
        data = self._get_json(token, "user", "user_fetch_failed")
        if not isinstance(data, dict) or data.get("id") is None or not data.get("login"):
            logger.error("GitHub /user response is missing id or login")
            raise UpstreamError("GitHub returned an incomplete user profile.", code="user_fetch_failed")
        profile = GitHubProfile(
            external_id=str(data["id"]),
            username=data["login"],
            avatar_url=data.get("avatar_url"),
            email=data.get("email"),
        )
        logger.info("Fetched GitHub user data (github_id=%s, username=%s)", profile.external_id, profile.username)
        return profile

    def fetch_primary_email(self, token: str) -> str:
        """Return the address GitHub flags as primary. UpstreamError if none is."""
        emails = self._get_json(token, "user/emails", "email_fetch_failed")
        if not isinstance(emails, list):
            logger.error("GitHub /user/emails response is not a list")
            raise UpstreamError("GitHub returned an unreadable email list.", code="email_fetch_failed")
        for entry in emails:
            if isinstance(entry, dict) and entry.get("primary") and entry.get("email"):
                return entry["email"]
        logger.error("No primary email among %d GitHub email entries", len(emails))
        raise UpstreamError("Could not fetch primary email from GitHub.", code="no_primary_email")


def _provider_message(resp: requests.Response) -> str:
    try:
        return resp.json().get("message") or resp.reason
    except (ValueError, AttributeError):
        return resp.reason or f"HTTP {resp.status_code}"
