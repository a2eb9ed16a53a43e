"""
api/routes/v1/readme.py -- Saved README drafts, one per user and repository.

Routes:
  GET    /api/v1/readme?repoFullName=owner/name  -- fetch the draft (requires auth)
  POST   /api/v1/readme                          -- create or replace the draft (requires auth)
  DELETE /api/v1/readme                          -- delete the draft (requires auth)
  POST   /api/v1/readme/drafts-status            -- which of these repos have drafts (requires auth)

Drafts never leave the database: committing one to GitHub is the job of
POST /github/save-readme, which the frontend calls with the edited content.
A draft is always looked up by (current user, repo), so a repo name from
another account's draft resolves to 404 here.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import ApiResponse, DraftOut, DraftRefRequest, DraftsStatusRequest, SaveDraftRequest
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from core.errors import BadRequest, NotFound

logger = logging.getLogger("readivine.api.readme")

router = APIRouter()


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


@router.get("/readme")
def get_draft(
    request: Request,
    repo_full_name: str | None = Query(default=None, alias="repoFullName"),
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    if not repo_full_name:
        raise BadRequest("Repository full name is required.")
    draft = _store(request).get_readme_draft(current_user.id, repo_full_name)
    if draft is None:
        raise NotFound("No saved README found for this repository.")
    return JSONResponse(
        content=ApiResponse(
            data=DraftOut.from_draft(draft).model_dump(by_alias=True), message="README draft fetched successfully."
        ).dump()
    )


@router.post("/readme", status_code=201)
def save_draft(
    request: Request,
    body: SaveDraftRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Upsert: a second save for the same repo replaces the content."""
    if not body.repo_full_name or not body.content:
        raise BadRequest("Repository name and content are required.")
    draft = _store(request).save_readme_draft(current_user.id, body.repo_full_name, body.content)
    return JSONResponse(
        status_code=201,
        content=ApiResponse(
            status_code=201,
            data=DraftOut.from_draft(draft).model_dump(by_alias=True),
            message="README draft saved successfully.",
        ).dump(),
    )


@router.delete("/readme")
def delete_draft(
    request: Request,
    body: DraftRefRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    if not body.repo_full_name:
        raise BadRequest("Repository full name is required.")
    if not _store(request).delete_readme_draft(current_user.id, body.repo_full_name):
        raise NotFound("No saved README found to delete.")
    logger.info("Deleted README draft (user_id=%s, repo=%s)", current_user.id, body.repo_full_name)
    return JSONResponse(content=ApiResponse(data={}, message="README draft deleted successfully.").dump())


@router.post("/readme/drafts-status")
def drafts_status(
    request: Request,
    body: DraftsStatusRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Return the names, out of repoFullNames, that have a saved draft."""
    if not isinstance(body.repo_full_names, list):
        raise BadRequest("repoFullNames must be an array.")
    names = [name for name in body.repo_full_names if isinstance(name, str)]
    with_drafts = _store(request).repos_with_drafts(current_user.id, names)
    return JSONResponse(content=ApiResponse(data=with_drafts, message="Draft statuses checked successfully.").dump())
