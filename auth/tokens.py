"""
auth/tokens.py -- Session token codec (access + refresh JWTs).

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       independent secrets (ACCESS_TOKEN_SECRET, REFRESH_TOKEN_SECRET) and
       carry independent expiries, so a leaked refresh secret cannot mint
       access tokens and vice versa.

  Access tokens carry {user_id, email, username}; refresh tokens carry only
  {user_id}. Both carry a "type" claim so one can never be replayed as the
  other even if the two secrets were configured identically.

  Verification raises InvalidToken on any failure -- bad signature, expiry,
  malformed input, wrong type, missing user_id. The auth dependency turns
  that into a 401.

  Secrets and lifetimes come from core.config.get_settings(). The functions
  below have no side effects.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from core.config import get_settings
from core.errors import InvalidToken

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("readivine.auth.tokens")

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"


def _encode(claims: dict, secret: str, expire_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": now,
        "exp": now + timedelta(seconds=expire_seconds),
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def issue_access_token(user: User) -> str:
    """Encode a signed access JWT for user, valid for Settings.access_token_ttl."""
    settings = get_settings()
    return _encode(
        {
            "sub": str(user.id),
            "user_id": user.id,
            "email": user.email,
            "username": user.username,
            "type": ACCESS,
        },
        settings.access_token_secret,
        settings.access_token_ttl,
    )


def issue_refresh_token(user: User) -> str:
    """Encode a signed refresh JWT for user, valid for Settings.refresh_token_ttl."""
    settings = get_settings()
    return _encode(
        {"sub": str(user.id), "user_id": user.id, "type": REFRESH},
        settings.refresh_token_secret,
        settings.refresh_token_ttl,
    )


def verify_token(token: str, secret: str, token_type: str | None = None) -> dict:
    """Decode and verify a JWT. Returns the payload dict.

    Raises InvalidToken if the signature is invalid, the token is expired or
    malformed, user_id is missing, or (when token_type is given) the type
    claim does not match.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise InvalidToken(f"Invalid session token: {exc}") from exc
    if "user_id" not in payload:
        raise InvalidToken("Invalid session token: missing user_id")
    if token_type is not None and payload.get("type") != token_type:
        raise InvalidToken("Invalid session token: wrong token type")
    return payload


def verify_access_token(token: str) -> dict:
    return verify_token(token, get_settings().access_token_secret, ACCESS)
