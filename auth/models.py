"""
auth/models.py -- Domain dataclasses for accounts and the data they own.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the domain shape.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A local account bound to one GitHub identity.

    github_id is None only for records created before GitHub ids were stored;
    the OAuth callback fills it in on the next login (matched by email).

    github_access_token always holds Fernet ciphertext, never the raw token.
    UserStore encrypts on write and only UserStore.get_github_token() decrypts.
    Objects handed to route handlers by the auth dependency have it set to None.

    refresh_token mirrors the refresh half of the most recently issued session
    so logout can invalidate it server-side.
    """

    username: str
    email: str
    id: int | None = None
    github_id: str | None = None
    avatar_url: str | None = None
    github_access_token: str | None = None  # ciphertext
    refresh_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class GitHubProfile:
    """The fields of GET /user the callback needs, normalized."""

    external_id: str
    username: str
    avatar_url: str | None = None
    email: str | None = None  # public profile email; may be absent


@dataclass(frozen=True)
class TokenPair:
    """A freshly minted session. Ephemeral -- only refresh_token is persisted."""

    access_token: str
    refresh_token: str


@dataclass
class ReadmeDraft:
    """An unpublished README kept for one repository. One per (owner, repo)."""

    owner_id: int
    repo_full_name: str
    content: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
