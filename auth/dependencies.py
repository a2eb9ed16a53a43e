"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Per-request state machine:

  no token            -> InvalidToken  (401)
  token, verify fails -> InvalidToken  (401)
  verified, no user   -> UserNotFound  (401)
  verified, user      -> return user (without the encrypted GitHub token)

The token is read from the "accessToken" cookie set by the OAuth callback. An
Authorization: Bearer header is accepted only when no cookie is present, for
API clients that cannot hold cookies.

InvalidToken and UserNotFound render the same 401 body (see api/main.py), so a
caller cannot learn which check failed.

Layer rule: may import fastapi (Request) because this module is part of the
FastAPI dependency injection system. No imports from client/.
"""

from __future__ import annotations

from fastapi import Request

from auth.cookies import ACCESS_COOKIE
from auth.models import User
from auth.store import UserStore
from auth.tokens import verify_access_token
from core.errors import InvalidToken, UserNotFound


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_current_user(request: Request) -> User:
    """Require a valid session. Raises InvalidToken / UserNotFound (both 401).

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = _extract_token(request)
    if token is None:
        raise InvalidToken("Unauthorized request: no session token provided.")

    payload = verify_access_token(token)

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(payload["user_id"])
    if user is None:
        raise UserNotFound("Invalid session: user not found.")
    return user

