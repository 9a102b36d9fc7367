"""RoleSyncRunner — one pass over every eligible guild."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitroles.engines.role_sync.github_client import GitHubClient
from gitroles.engines.role_sync.membership import MembershipLoader
from gitroles.engines.role_sync.models import GuildSyncResult, GuildSyncTarget, RepositoryRef
from gitroles.engines.role_sync.reconciler import GuildReconciler
from gitroles.services.guild_config_service import GuildConfigService
from gitroles.services.repository_sync_service import RepositorySyncService

log = structlog.get_logger("gitroles.engine")

_MAX_CONCURRENCY = 3


@dataclass
class PassResult:
    started_at: datetime
    completed_at: datetime | None = None
    guilds: list[GuildSyncResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for g in self.guilds if g.success)

    @property
    def failed(self) -> int:
        return len(self.guilds) - self.succeeded

    def summary(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "guilds": len(self.guilds),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "roles_added": sum(g.roles_added for g in self.guilds),
            "roles_removed": sum(g.roles_removed for g in self.guilds),
            "errors": {g.guild_id: g.error for g in self.guilds if g.error},
        }


def build_target(config, repositories) -> GuildSyncTarget:
    """Detach ORM rows into an immutable snapshot for the pass."""
    return GuildSyncTarget(
        guild_config_id=config.id,
        guild_id=config.guild_id,
        contributor_role_id=config.contributor_role_id,
        stargazer_role_id=config.stargazer_role_id,
        repositories=tuple(RepositoryRef(owner=r.owner, name=r.name) for r in repositories),
    )


class RoleSyncRunner:
    """Orchestration layer: eligible guilds → reconciler, bounded concurrency."""

    def __init__(
        self,
        guild_config_service: GuildConfigService,
        repository_sync_service: RepositorySyncService,
        reconciler: GuildReconciler,
        client: GitHubClient,
        max_concurrency: int = _MAX_CONCURRENCY,
    ) -> None:
        self._config_service = guild_config_service
        self._repo_sync_service = repository_sync_service
        self._reconciler = reconciler
        self._client = client
        self._max_concurrency = max_concurrency

    async def run_all(self, session_factory: async_sessionmaker[AsyncSession]) -> PassResult:
        """Reconcile every eligible guild; one guild's failure never stops the rest."""
        result = PassResult(started_at=datetime.now(timezone.utc))
        # Cached responses are valid for one pass only.
        self._client.cache.clear()

        async with session_factory() as session:
            async with session.begin():
                rows = await self._config_service.list_eligible_for_sync(session)
        targets = [build_target(row["config"], row["repositories"]) for row in rows]

        if targets:
            loader = MembershipLoader(session_factory, self._client, self._repo_sync_service)
            sem = asyncio.Semaphore(self._max_concurrency)

            async def _run_one(target: GuildSyncTarget) -> GuildSyncResult:
                async with sem:
                    try:
                        return await self._reconciler.reconcile(target, loader)
                    except Exception as exc:
                        log.error("runner.guild_failed", guild_id=target.guild_id, error=str(exc))
                        return GuildSyncResult(guild_id=target.guild_id, error=str(exc))

            result.guilds = list(await asyncio.gather(*(_run_one(t) for t in targets)))

        result.completed_at = datetime.now(timezone.utc)
        log.info("runner.pass_completed", **result.summary())
        return result
