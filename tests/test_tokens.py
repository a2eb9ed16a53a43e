"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - Access and refresh tokens round-trip their claims
  - Each token only verifies under its own secret and type
  - Expired, malformed and user_id-less tokens raise InvalidToken
"""

from __future__ import annotations

import pytest
from jose import jwt

from auth.models import User
from auth.tokens import (
    ACCESS,
    REFRESH,
    _encode,
    issue_access_token,
    issue_refresh_token,
    verify_access_token,
    verify_token,
)
from core.config import get_settings
from core.errors import InvalidToken

_USER = User(id=7, username="alice", email="alice@example.com")


class TestRoundTrip:
    def test_access_token_carries_identity_claims(self) -> None:
        payload = verify_access_token(issue_access_token(_USER))
        assert payload["user_id"] == 7
        assert payload["email"] == "alice@example.com"
        assert payload["username"] == "alice"
        assert payload["type"] == ACCESS

    def test_refresh_token_carries_only_user_id(self) -> None:
        payload = verify_token(issue_refresh_token(_USER), get_settings().refresh_token_secret, REFRESH)
        assert payload["user_id"] == 7
        assert "email" not in payload
        assert "username" not in payload

    def test_access_expiry_matches_configured_ttl(self) -> None:
        payload = verify_access_token(issue_access_token(_USER))
        assert payload["exp"] - payload["iat"] == get_settings().access_token_ttl


class TestRejection:
    def test_wrong_secret_rejected(self) -> None:
        token = issue_access_token(_USER)
        with pytest.raises(InvalidToken):
            verify_token(token, "a-completely-different-secret-value-0123456789")

    def test_refresh_token_is_not_an_access_token(self) -> None:
        """A refresh token is signed with the refresh secret, so access verification fails."""
        with pytest.raises(InvalidToken):
            verify_access_token(issue_refresh_token(_USER))

    def test_wrong_type_rejected_even_with_matching_secret(self) -> None:
        secret = get_settings().access_token_secret
        token = _encode({"user_id": 7, "type": REFRESH}, secret, 60)
        with pytest.raises(InvalidToken, match="wrong token type"):
            verify_access_token(token)

    def test_expired_token_rejected(self) -> None:
        secret = get_settings().access_token_secret
        token = _encode({"user_id": 7, "type": ACCESS}, secret, -10)
        with pytest.raises(InvalidToken):
            verify_access_token(token)

    def test_missing_user_id_rejected(self) -> None:
        secret = get_settings().access_token_secret
        token = jwt.encode({"type": ACCESS}, secret, algorithm="HS256")
        with pytest.raises(InvalidToken, match="missing user_id"):
            verify_access_token(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_rejected(self, garbage: str) -> None:
        with pytest.raises(InvalidToken):
            verify_access_token(garbage)
