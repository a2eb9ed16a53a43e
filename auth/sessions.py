"""
auth/sessions.py -- Session issuance after a successful GitHub login.

find_or_create_user() binds a GitHub identity to exactly one local user;
issue_session() mints the access/refresh pair and records the refresh half on
the user so logout can invalidate it.

Both are called in sequence by the OAuth callback. Writes are last-writer-wins
and idempotent: two concurrent callbacks for the same GitHub account converge
on one row holding whichever token/avatar was written last.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import GitHubProfile, TokenPair, User
from auth.store import UserStore
from auth.tokens import issue_access_token, issue_refresh_token
from core.errors import InternalError

logger = logging.getLogger("readivine.auth.sessions")


def find_or_create_user(store: UserStore, profile: GitHubProfile, email: str, github_token: str) -> User:
    """Return the local user for profile, creating it on first login.

    Lookup is by GitHub id OR email, so an account created before GitHub ids
    were recorded is adopted rather than duplicated. On a hit the GitHub id,
    avatar and token are refreshed; on a miss a new user is inserted. The
    token is passed in plaintext and encrypted by the store.
    """
    user = store.find_by_github_id_or_email(profile.external_id, email)
    if user is not None:
        logger.info(
            "Existing user found, updating GitHub info (user_id=%s, github_id %s -> %s)",
            user.id,
            user.github_id,
            profile.external_id,
        )
        store.update_github_identity(user.id, profile.external_id, profile.avatar_url, github_token)
        user_id = user.id
    else:
        logger.info("Creating new user account (github_id=%s, username=%s)", profile.external_id, profile.username)
        try:
            user_id = store.create_user(
                User(
                    username=profile.username,
                    email=email,
                    github_id=profile.external_id,
                    avatar_url=profile.avatar_url,
                ),
                github_token=github_token,
            )
        except IntegrityError as exc:
            # Username taken by a different GitHub account (e.g. a renamed login).
            logger.error("Cannot create user %s: username or email already registered", profile.username)
            raise InternalError("Could not create an account for this GitHub user.") from exc

    saved = store.get_by_id(user_id)
    if saved is None:
        raise InternalError("User record disappeared while saving the GitHub login.")
    logger.info("User data saved (user_id=%s, username=%s)", saved.id, saved.username)
    return saved


def issue_session(store: UserStore, user_id: int) -> TokenPair:
    """Mint an access/refresh pair for user_id and persist the refresh token.

    Raises InternalError if the user cannot be loaded (deleted mid-flight).
    That is fatal for the callback -- retrying would hit the same miss.
    """
    user = store.get_by_id(user_id)
    if user is None:
        logger.error("Cannot issue session: user %s not found", user_id)
        raise InternalError("Something went wrong while generating refresh and access tokens.")

    pair = TokenPair(access_token=issue_access_token(user), refresh_token=issue_refresh_token(user))
    if not store.set_refresh_token(user.id, pair.refresh_token):
        raise InternalError("Something went wrong while generating refresh and access tokens.")
    return pair
