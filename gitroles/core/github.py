"""GitHub repository naming helpers and the follow-time existence check."""

from __future__ import annotations

import os
import re

import httpx

GITHUB_API_URL = "https://api.github.com"

_REPO_PART_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def is_valid_repo_part(value: str) -> bool:
    """True if *value* is an acceptable GitHub owner or repository name."""
    return bool(value) and _REPO_PART_RE.match(value) is not None


async def repository_exists(owner: str, name: str, token: str | None = None) -> bool:
    """Check that ``owner/name`` exists and is visible to us.

    Returns False on 404 (or 403 for private repositories). Network failures
    propagate as ``httpx.HTTPError`` so callers can tell "missing" from
    "GitHub unavailable".
    """
    token = token or os.environ.get("GITHUB_TOKEN")
    headers = {"Accept": "application/vnd.github+json", "User-Agent": "gitroles"}
    if token:
        headers["Authorization"] = f"token {token}"

    async with httpx.AsyncClient(base_url=GITHUB_API_URL, timeout=10) as client:
        resp = await client.get(f"/repos/{owner}/{name}", headers=headers)
    if resp.status_code == 200:
        return True
    if resp.status_code in (403, 404):
        return False
    resp.raise_for_status()
    return False
