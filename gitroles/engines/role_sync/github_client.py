"""Async GitHub API client with pagination, ETags, rate-limit handling, and retries."""

from __future__ import annotations

import asyncio
import os
import random
import re
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from gitroles.core.github import GITHUB_API_URL
from gitroles.engines.role_sync.models import MembershipFetch
from gitroles.engines.role_sync.rate_limiter import RESET_BUFFER_SECONDS, GitHubRateLimiter
from gitroles.engines.role_sync.response_cache import ResponseCache

log = structlog.get_logger("gitroles.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_RETRY_MAX_DELAY = 60.0
_PER_PAGE = 100


class RateLimitError(Exception):
    """Raised when GitHub keeps rate limiting us after all retries."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


def _contributor_login(item: dict[str, Any]) -> str | None:
    # Anonymous contributors carry no login.
    return item.get("login")


def _stargazer_login(item: dict[str, Any]) -> str | None:
    # star+json media type nests the user object.
    user = item.get("user", item)
    return user.get("login") if isinstance(user, dict) else None


class GitHubClient:
    """Async wrapper around the GitHub REST membership endpoints.

    The rate limiter and response cache are shared by every caller of one
    client instance; the process creates a single client.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        rate_limiter: GitHubRateLimiter | None = None,
        cache: ResponseCache[MembershipFetch] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "gitroles",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=GITHUB_API_URL,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.rate_limiter = rate_limiter or GitHubRateLimiter()
        self.cache: ResponseCache[MembershipFetch] = cache or ResponseCache()

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def fetch_contributors(
        self, owner: str, name: str, etag: str | None = None
    ) -> MembershipFetch:
        """Lowercased contributor logins of ``owner/name`` (all pages)."""
        return await self._fetch_logins(
            f"/repos/{owner}/{name}/contributors", etag, _contributor_login
        )

    async def fetch_stargazers(
        self, owner: str, name: str, etag: str | None = None
    ) -> MembershipFetch:
        """Lowercased stargazer logins of ``owner/name`` (all pages)."""
        return await self._fetch_logins(
            f"/repos/{owner}/{name}/stargazers", etag, _stargazer_login
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _fetch_logins(
        self,
        path: str,
        etag: str | None,
        extract: Callable[[dict[str, Any]], str | None],
    ) -> MembershipFetch:
        """Conditionally fetch every page of *path* and collect logins.

        Only the first page is conditional. GitHub ETags cover a single page,
        so the returned ETag is None unless page 1 held the whole list with
        room to spare; multi-page and full lists are refetched every time.
        """
        cached = self.cache.get(path)
        if cached is not None:
            log.debug("github.cache_hit", path=path)
            if etag is not None and cached.etag == etag:
                return MembershipFetch(logins=None, etag=etag, not_modified=True)
            return cached

        first_headers = {"If-None-Match": etag} if etag else None
        url: str | None = path
        logins: set[str] = set()
        new_etag: str | None = None
        page = 0
        page_size = 0

        while url:
            first = page == 0
            response = await self._request_with_retry(
                url,
                {"per_page": _PER_PAGE} if first else None,
                first_headers if first else None,
            )
            if first:
                if response.status_code == 304:
                    log.debug("github.not_modified", path=path)
                    return MembershipFetch(
                        logins=None,
                        etag=response.headers.get("ETag") or etag,
                        not_modified=True,
                    )
                new_etag = response.headers.get("ETag")

            # 204: empty repository, no body.
            if response.status_code != 204 and response.content:
                data = response.json()
                if isinstance(data, list):
                    page_size = len(data)
                    for item in data:
                        if isinstance(item, dict):
                            login = extract(item)
                            if login:
                                logins.add(login.lower())

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

        if page > 1 or page_size >= _PER_PAGE:
            new_etag = None

        log.info("github.fetched", path=path, pages=page, count=len(logins), etag=new_etag)
        result = MembershipFetch(logins=frozenset(logins), etag=new_etag, not_modified=False)
        self.cache.set(path, result)
        return result

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with bounded retries on rate limits, 5xx, timeouts and transport errors.

        Returns 2xx and 304 responses; other 4xx raise ``HTTPStatusError``
        immediately. After the last attempt the last error is raised.
        """
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            await self.rate_limiter.acquire()
            try:
                resp = await self._client.get(url, params=params, headers=headers)
            except httpx.TransportError as exc:
                # Includes TimeoutException.
                log.warning(
                    "github.transport_error",
                    url=url,
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc
            else:
                await self.rate_limiter.update(resp.headers)

                if resp.status_code in (403, 429) and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        status=resp.status_code,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=_MAX_RETRIES,
                    )
                    last_exc = RateLimitError(wait)
                    if attempt < _MAX_RETRIES - 1:
                        await asyncio.sleep(wait)
                    continue

                if resp.status_code < 500:
                    if resp.status_code != 304:
                        resp.raise_for_status()
                    return resp

                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )

            if attempt < _MAX_RETRIES - 1:
                await asyncio.sleep(self._backoff_delay(attempt))

        raise last_exc  # type: ignore[misc]

    @staticmethod
    def _backoff_delay(attempt: int) -> float:
        """Exponential backoff with jitter: 1s, 2s, 4s ... capped at 60s."""
        delay = _RETRY_BASE_DELAY * (2**attempt) + random.uniform(0, _RETRY_BASE_DELAY)
        return min(delay, _RETRY_MAX_DELAY)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403/429 response is due to rate limiting."""
        if "Retry-After" in response.headers:
            return True
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        return response.status_code == 429

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Seconds to wait based on rate-limit headers."""
        # Retry-After is used for secondary rate limits
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 0) + RESET_BUFFER_SECONDS
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
