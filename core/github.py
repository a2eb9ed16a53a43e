"""
github.py -- GitHub REST calls made on behalf of a logged-in user.

Repository listing and README commits. Every function takes the user's
decrypted GitHub token as its first argument; the token is used to build the
Authorization header and is never logged.

Failures raise UpstreamError carrying GitHub's status and message. Nothing
here retries: a README commit is a five-step ref dance and a blind retry of a
half-finished sequence could leave a dangling branch.
"""

import logging
from typing import Any, Optional

import requests

from core.errors import UpstreamError

logger = logging.getLogger("readivine.github")

GITHUB_API = "https://api.github.com"
DEFAULT_BRANCH = "main"
README_PATH = "README.md"

# Module-level session shared across all calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- api.github.com is a
# known host, 3 hops is generous and limits redirect-chain abuse.
_session = requests.Session()
_session.max_redirects = 3


def _request(token: str, method: str, path: str, **kwargs) -> Any:
    headers = {
        "Authorization": f"token {token}",
        "Accept": "application/vnd.github+json",
    }
    try:
        resp = _session.request(method, f"{GITHUB_API}{path}", headers=headers, timeout=15, **kwargs)
    except requests.RequestException as e:
        logger.warning("GitHub %s %s failed: %s", method, path, e)
        raise UpstreamError("Could not reach GitHub.", provider_message=str(e)) from e
    if not resp.ok:
        try:
            message = resp.json().get("message", resp.reason)
        except (ValueError, AttributeError):
            message = resp.reason
        logger.warning("GitHub %s %s returned %d: %s", method, path, resp.status_code, message)
        raise UpstreamError(
            f"GitHub API error: {message}",
            provider_status=resp.status_code,
            provider_message=message,
        )
    return resp.json() if resp.content else None


def list_repos(token: str, per_page: int = 50) -> list[dict[str, Any]]:
    """Return the user's repositories, most recently updated first."""
    raw = _request(token, "GET", "/user/repos", params={"sort": "updated", "per_page": per_page})
    return [
        {
            "id": repo["id"],
            "name": repo["name"],
            "fullName": repo["full_name"],
            "private": repo["private"],
            "url": repo["html_url"],
            "description": repo.get("description"),
            "language": repo.get("language"),
            "updatedAt": repo.get("updated_at"),
        }
        for repo in raw
    ]


def _commit_readme(token: str, repo_full_name: str, base_sha: str, content: str, message: str) -> str:
    """Create blob -> tree -> commit on top of base_sha. Returns the new commit SHA."""
    blob = _request(
        token, "POST", f"/repos/{repo_full_name}/git/blobs", json={"content": content, "encoding": "utf-8"}
    )
    tree = _request(
        token,
        "POST",
        f"/repos/{repo_full_name}/git/trees",
        json={
            "base_tree": base_sha,
            "tree": [{"path": README_PATH, "mode": "100644", "type": "blob", "sha": blob["sha"]}],
        },
    )
    commit = _request(
        token,
        "POST",
        f"/repos/{repo_full_name}/git/commits",
        json={"message": message, "tree": tree["sha"], "parents": [base_sha]},
    )
    return commit["sha"]


def save_readme(token: str, repo_full_name: str, content: str, message: str) -> str:
    """Commit README.md to the main branch. Returns the new commit SHA."""
    branch = _request(token, "GET", f"/repos/{repo_full_name}/branches/{DEFAULT_BRANCH}")
    base_sha = branch["commit"]["sha"]
    commit_sha = _commit_readme(token, repo_full_name, base_sha, content, message)
    _request(token, "PATCH", f"/repos/{repo_full_name}/git/refs/heads/{DEFAULT_BRANCH}", json={"sha": commit_sha})
    logger.info("README committed to %s@%s (%s)", repo_full_name, DEFAULT_BRANCH, commit_sha[:7])
    return commit_sha


def save_readme_to_new_branch(
    token: str,
    repo_full_name: str,
    content: str,
    message: str,
    branch_name: str,
) -> dict[str, Optional[str]]:
    """Branch off main, commit README.md there, and return the pull-request URL."""
    ref = _request(token, "GET", f"/repos/{repo_full_name}/git/refs/heads/{DEFAULT_BRANCH}")
    base_sha = ref["object"]["sha"]
    _request(
        token,
        "POST",
        f"/repos/{repo_full_name}/git/refs",
        json={"ref": f"refs/heads/{branch_name}", "sha": base_sha},
    )
    commit_sha = _commit_readme(token, repo_full_name, base_sha, content, message)
    _request(
        token,
        "PATCH",
        f"/repos/{repo_full_name}/git/refs/heads/{branch_name}",
        json={"sha": commit_sha, "force": True},
    )
    logger.info("README committed to %s@%s (%s)", repo_full_name, branch_name, commit_sha[:7])
    return {
        "commitSha": commit_sha,
        "branch": branch_name,
        "pullRequestUrl": f"https://github.com/{repo_full_name}/pull/new/{branch_name}",
    }
