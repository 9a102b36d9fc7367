"""Per-pass repository membership loader.

Each ``(repository, kind)`` pair is fetched at most once per pass no matter
how many guilds follow the repository; concurrent guilds await the same task.
"""

from __future__ import annotations

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitroles.engines.role_sync.github_client import GitHubClient
from gitroles.engines.role_sync.models import MembershipFetch, RepositoryRef, RoleKind
from gitroles.services.repository_sync_service import RepositorySyncService

log = structlog.get_logger("gitroles.engine")


class MembershipLoader:
    """Fetch, persist and memoize repository membership for one pass."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: GitHubClient,
        repository_sync_service: RepositorySyncService,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._sync_service = repository_sync_service
        self._tasks: dict[tuple[str, RoleKind], asyncio.Task[frozenset[str] | None]] = {}
        self.errors: dict[str, str] = {}

    async def load(self, repo: RepositoryRef, kind: RoleKind) -> frozenset[str] | None:
        """Logins of *kind* for *repo*, or None when the fetch failed."""
        key = (repo.full_name, kind)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(repo, kind))
            self._tasks[key] = task
        return await asyncio.shield(task)

    async def _load(self, repo: RepositoryRef, kind: RoleKind) -> frozenset[str] | None:
        full_name = repo.full_name
        try:
            async with self._session_factory() as session:
                etag = await self._sync_service.get_etag(session, full_name, kind)

            fetch = await self._fetch(repo, kind, etag)

            async with self._session_factory() as session:
                async with session.begin():
                    if fetch.not_modified:
                        cached = await self._sync_service.get_cached_logins(
                            session, full_name, kind
                        )
                        await self._sync_service.record_not_modified(session, full_name, kind)
                        log.debug(
                            "membership.not_modified",
                            repository=full_name,
                            kind=kind,
                            count=len(cached),
                        )
                        return frozenset(cached)

                    logins = fetch.logins or frozenset()
                    await self._sync_service.record_fetch(
                        session, full_name, kind, logins, fetch.etag
                    )
            log.info("membership.fetched", repository=full_name, kind=kind, count=len(logins))
            return logins
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            log.warning("membership.fetch_failed", repository=full_name, kind=kind, error=error)
            previous = self.errors.get(full_name)
            message = f"{kind}: {error}"
            self.errors[full_name] = f"{previous}; {message}" if previous else message
            await self._record_error(full_name, kind, error)
            return None

    async def _fetch(
        self, repo: RepositoryRef, kind: RoleKind, etag: str | None
    ) -> MembershipFetch:
        if kind == "contributor":
            return await self._client.fetch_contributors(repo.owner, repo.name, etag)
        return await self._client.fetch_stargazers(repo.owner, repo.name, etag)

    async def _record_error(self, full_name: str, kind: RoleKind, error: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._sync_service.record_error(session, full_name, kind, error)
        except Exception:
            log.warning("membership.error_record_failed", repository=full_name, kind=kind)
