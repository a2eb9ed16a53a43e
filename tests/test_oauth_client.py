"""
tests/test_oauth_client.py -- Unit tests for auth/oauth.py.

authlib's OAuth2Session is patched at auth.oauth.OAuth2Session so no test
reaches github.com. authorize_url() is exercised against the real session
because it builds a URL without any network traffic.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from authlib.integrations.requests_client import OAuthError

from auth.oauth import ACCESS_TOKEN_URL, AUTHORIZE_URL, GitHubOAuthClient
from core.config import Settings
from core.errors import ConfigError, UpstreamError


def _client(**overrides) -> GitHubOAuthClient:
    values = {
        "debug": True,
        "github_client_id": "cid",
        "github_client_secret": "csecret",
        "github_callback_url": "http://localhost:8000/api/v1/auth/github/callback",
    }
    values.update(overrides)
    return GitHubOAuthClient(Settings(**values))


def _response(status: int, body) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = "Unauthorized" if status == 401 else "OK"
    resp.json.return_value = body
    return resp


class TestAuthorizeUrl:
    def test_contains_client_id_scope_and_callback(self) -> None:
        url = _client().authorize_url()
        assert url.startswith(AUTHORIZE_URL)
        qs = parse_qs(urlparse(url).query)
        assert qs["client_id"] == ["cid"]
        assert qs["scope"] == ["repo user:email"]
        assert qs["redirect_uri"] == ["http://localhost:8000/api/v1/auth/github/callback"]

    def test_missing_client_id_is_config_error(self) -> None:
        with pytest.raises(ConfigError, match="Client ID"):
            _client(github_client_id="").authorize_url()

    def test_missing_callback_is_config_error(self) -> None:
        client = _client(github_callback_url="")
        assert client.configured is False
        with pytest.raises(ConfigError, match="callback URL"):
            client.authorize_url()


@patch("auth.oauth.OAuth2Session")
class TestTokenExchange:
    def test_returns_access_token(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.return_value = {"access_token": "tok_xyz", "token_type": "bearer"}
        assert _client().exchange_code_for_token("abc123") == "tok_xyz"
        session_cls.return_value.fetch_token.assert_called_once()
        args, kwargs = session_cls.return_value.fetch_token.call_args
        assert args == (ACCESS_TOKEN_URL,)
        assert kwargs["code"] == "abc123"

    def test_provider_error_is_upstream_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.side_effect = OAuthError(
            error="bad_verification_code", description="The code passed is incorrect or expired."
        )
        with pytest.raises(UpstreamError) as exc_info:
            _client().exchange_code_for_token("stale")
        assert exc_info.value.code == "token_exchange_failed"
        assert exc_info.value.provider_message == "The code passed is incorrect or expired."

    def test_missing_access_token_is_upstream_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.return_value = {"token_type": "bearer"}
        with pytest.raises(UpstreamError, match="No access token received"):
            _client().exchange_code_for_token("abc123")

    def test_network_failure_is_upstream_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.fetch_token.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(UpstreamError) as exc_info:
            _client().exchange_code_for_token("abc123")
        assert exc_info.value.code == "token_exchange_failed"


@patch("auth.oauth.OAuth2Session")
class TestProfile:
    def test_fetch_provider_user(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(
            200, {"id": 42, "login": "alice", "avatar_url": "https://avatars.example/42", "email": None}
        )
        profile = _client().fetch_provider_user("tok_xyz")
        assert profile.external_id == "42"
        assert profile.username == "alice"
        assert profile.avatar_url == "https://avatars.example/42"
        # The token rides on the session, not in the URL.
        assert session_cls.call_args.kwargs["token"]["access_token"] == "tok_xyz"

    def test_user_fetch_http_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(401, {"message": "Bad credentials"})
        with pytest.raises(UpstreamError) as exc_info:
            _client().fetch_provider_user("tok_xyz")
        assert exc_info.value.provider_status == 401
        assert exc_info.value.provider_message == "Bad credentials"
        assert exc_info.value.code == "user_fetch_failed"

    def test_primary_email_selected(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(
            200,
            [
                {"email": "alt@example.com", "primary": False, "verified": True},
                {"email": "alice@example.com", "primary": True, "verified": True},
            ],
        )
        assert _client().fetch_primary_email("tok_xyz") == "alice@example.com"

    def test_no_primary_email_fails(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(
            200, [{"email": "alt@example.com", "primary": False, "verified": True}]
        )
        with pytest.raises(UpstreamError) as exc_info:
            _client().fetch_primary_email("tok_xyz")
        assert exc_info.value.code == "no_primary_email"

    def test_profile_without_id_is_upstream_error(self, session_cls: MagicMock) -> None:
        session_cls.return_value.get.return_value = _response(200, {"message": "weird"})
        with pytest.raises(UpstreamError) as exc_info:
            _client().fetch_provider_user("tok_xyz")
        assert exc_info.value.code == "user_fetch_failed"

    def test_non_json_profile_is_upstream_error(self, session_cls: MagicMock) -> None:
        resp = _response(200, None)
        resp.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        session_cls.return_value.get.return_value = resp
        with pytest.raises(UpstreamError) as exc_info:
            _client().fetch_provider_user("tok_xyz")
        assert exc_info.value.code == "user_fetch_failed"

    @pytest.mark.parametrize(
        ("body", "code"),
        [({"email": "alice@example.com"}, "email_fetch_failed"), (["alice@example.com"], "no_primary_email")],
    )
    def test_malformed_email_list(self, session_cls: MagicMock, body, code: str) -> None:
        session_cls.return_value.get.return_value = _response(200, body)
        with pytest.raises(UpstreamError) as exc_info:
            _client().fetch_primary_email("tok_xyz")
        assert exc_info.value.code == code
