"""
api/routes/v1/github.py -- Repository listing and README commits.

Routes:
  GET  /api/v1/github/repos               -- user's repositories (requires auth)
  POST /api/v1/github/save-readme         -- commit README.md to main (requires auth)
  POST /api/v1/github/save-readme-branch  -- commit README.md to a new branch (requires auth)

The GitHub token is decrypted here, per request, immediately before the
GitHub call that needs it. The user object from get_current_user never holds
it. GitHub failures propagate as UpstreamError (502 envelope).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ApiResponse, SaveReadmeBranchRequest, SaveReadmeRequest
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from core import github
from core.errors import UpstreamError

router = APIRouter()


def _github_token(request: Request, user: User) -> str:
    user_store: UserStore = request.app.state.user_store
    token = user_store.get_github_token(user.id)
    if not token:
        raise UpstreamError("GitHub token is missing. Please log in again.", code="github_token_missing")
    return token


@router.get("/github/repos")
def list_repos(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    repos = github.list_repos(_github_token(request, current_user))
    return JSONResponse(content=ApiResponse(data=repos, message="Repositories fetched successfully.").dump())


@router.post("/github/save-readme")
def save_readme(
    request: Request,
    body: SaveReadmeRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Commit README.md on top of main and fast-forward main to it."""
    commit_sha = github.save_readme(
        _github_token(request, current_user),
        body.repo_full_name,
        body.readme_content,
        body.commit_message,
    )
    return JSONResponse(
        content=ApiResponse(
            data={"commitSha": commit_sha}, message="README saved to main branch successfully."
        ).dump()
    )


@router.post("/github/save-readme-branch")
def save_readme_branch(
    request: Request,
    body: SaveReadmeBranchRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Create new_branch_name off main and commit README.md there."""
    result = github.save_readme_to_new_branch(
        _github_token(request, current_user),
        body.repo_full_name,
        body.readme_content,
        body.commit_message,
        body.new_branch_name,
    )
    return JSONResponse(
        content=ApiResponse(
            data=result, message=f"README saved to new branch '{body.new_branch_name}' successfully."
        ).dump()
    )
