"""
API request and response models for Readivine REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Every JSON response uses one envelope:
  success: {statusCode, data, message, success: true}
  failure: {statusCode, message, success: false, errors?}

Field names are snake_case in Python and camelCase on the wire (the frontend
is JavaScript); alias_generator handles the mapping in both directions.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import ReadmeDraft, User


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiResponse(_CamelModel):
    status_code: int = 200
    data: Any = None
    message: str = "Success"
    success: bool = True

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


class ErrorResponse(_CamelModel):
    status_code: int
    message: str
    success: bool = False
    errors: Optional[list[Any]] = None

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class UserOut(_CamelModel):
    """Public view of a user. Has no field for the GitHub token by construction."""

    id: int
    github_id: Optional[str] = None
    username: str
    email: str
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            github_id=user.github_id,
            username=user.username,
            email=user.email,
            avatar_url=user.avatar_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthStatus(_CamelModel):
    authenticated: bool
    user: Optional[UserOut] = None


class DraftOut(_CamelModel):
    id: int
    owner: int
    repo_full_name: str
    content: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_draft(cls, draft: ReadmeDraft) -> "DraftOut":
        return cls(
            id=draft.id,
            owner=draft.owner_id,
            repo_full_name=draft.repo_full_name,
            content=draft.content,
            created_at=draft.created_at,
            updated_at=draft.updated_at,
        )


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SaveReadmeRequest(_CamelModel):
    """Body for POST /github/save-readme."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    repo_full_name: str = Field(min_length=3, max_length=200, pattern=r"^[\w.-]+/[\w.-]+$")
    readme_content: str = Field(min_length=1)
    commit_message: str = Field(min_length=1, max_length=500)


class SaveReadmeBranchRequest(SaveReadmeRequest):
    """Body for POST /github/save-readme-branch."""

    new_branch_name: str = Field(min_length=1, max_length=100, pattern=r"^[\w./-]+$")


# Draft bodies accept missing fields; the routes reject them with a 400 envelope.


class SaveDraftRequest(_CamelModel):
    """Body for POST /readme."""

    repo_full_name: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = None


class DraftRefRequest(_CamelModel):
    """Body for DELETE /readme."""

    repo_full_name: Optional[str] = Field(default=None, max_length=200)


class DraftsStatusRequest(_CamelModel):
    """Body for POST /readme/drafts-status. Anything but a list is a 400."""

    repo_full_names: Any = None
