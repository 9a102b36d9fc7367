"""GuildConfigService — per-guild role configuration and followed repositories."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.core.github import is_valid_repo_part, repository_exists
from gitroles.dao.guild_config_dao import FollowedRepositoryDAO, GuildConfigDAO
from gitroles.models.followed_repository import FollowedRepository
from gitroles.models.guild_config import GuildConfig
from gitroles.services import (
    ConflictError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)

log = structlog.get_logger("gitroles.service")

RepoExistsFn = Callable[[str, str], Awaitable[bool]]

_SENTINEL = object()


class GuildConfigService:
    """Stateless service for guild configuration."""

    def __init__(
        self,
        guild_config_dao: GuildConfigDAO,
        followed_repository_dao: FollowedRepositoryDAO,
        repo_exists: RepoExistsFn = repository_exists,
    ) -> None:
        self._config_dao = guild_config_dao
        self._repo_dao = followed_repository_dao
        self._repo_exists = repo_exists

    # ── read ──────────────────────────────────────────────────────────────

    async def get_config(self, session: AsyncSession, guild_id: str) -> GuildConfig:
        """Raises :class:`NotFoundError` if the guild has no configuration."""
        config = await self._config_dao.get_by_guild_id(session, guild_id)
        if config is None:
            raise NotFoundError(f"no configuration for guild {guild_id}")
        return config

    async def get_detail(self, session: AsyncSession, guild_id: str) -> dict:
        config = await self.get_config(session, guild_id)
        repositories = await self._repo_dao.list_by_guild_config(session, config.id)
        return {"config": config, "repositories": repositories}

    async def list_repositories(
        self, session: AsyncSession, guild_id: str
    ) -> list[FollowedRepository]:
        config = await self._config_dao.get_by_guild_id(session, guild_id)
        if config is None:
            return []
        return await self._repo_dao.list_by_guild_config(session, config.id)

    async def list_eligible_for_sync(self, session: AsyncSession) -> list[dict]:
        """Guilds with a role and a followed repository, with their repositories.

        Returns ``[{"config": GuildConfig, "repositories": [FollowedRepository]}]``.
        """
        configs = await self._config_dao.list_eligible_for_sync(session)
        repos = await self._repo_dao.list_by_guild_configs(session, [c.id for c in configs])
        return [{"config": c, "repositories": repos.get(c.id, [])} for c in configs]

    # ── write ─────────────────────────────────────────────────────────────

    async def get_or_create(self, session: AsyncSession, guild_id: str) -> GuildConfig:
        if not guild_id:
            raise ValidationError("guild_id is required")
        return await self._config_dao.get_or_create(session, guild_id)

    async def set_roles(
        self,
        session: AsyncSession,
        guild_id: str,
        *,
        contributor_role_id: str | None = _SENTINEL,
        stargazer_role_id: str | None = _SENTINEL,
    ) -> GuildConfig:
        """Configure (or clear, with ``None``) the managed roles of a guild."""
        config = await self.get_or_create(session, guild_id)
        kwargs: dict = {}
        if contributor_role_id is not _SENTINEL:
            kwargs["contributor_role_id"] = contributor_role_id or None
        if stargazer_role_id is not _SENTINEL:
            kwargs["stargazer_role_id"] = stargazer_role_id or None
        await self._config_dao.set_roles(session, config.id, **kwargs)
        await session.refresh(config)
        return config

    async def follow_repository(
        self, session: AsyncSession, guild_id: str, owner: str, name: str
    ) -> FollowedRepository:
        """Start following ``owner/name`` in a guild.

        Raises :class:`ValidationError` for malformed names or a repository
        GitHub does not know, :class:`ConflictError` if already followed and
        :class:`UpstreamUnavailableError` if GitHub could not be reached.
        """
        owner, name = owner.strip(), name.strip()
        if not (is_valid_repo_part(owner) and is_valid_repo_part(name)):
            raise ValidationError("invalid repository owner or name format")

        config = await self.get_or_create(session, guild_id)
        if await self._repo_dao.find(session, config.id, owner, name) is not None:
            raise ConflictError(f"repository {owner}/{name} is already being followed")

        try:
            exists = await self._repo_exists(owner, name)
        except httpx.HTTPError as exc:
            log.warning("guild.repo_check_failed", owner=owner, name=name, error=str(exc))
            raise UpstreamUnavailableError(
                f"unable to verify repository {owner}/{name}"
            ) from exc
        if not exists:
            raise ValidationError(f"repository {owner}/{name} does not exist or is not accessible")

        repo = await self._repo_dao.create(
            session, guild_config_id=config.id, owner=owner.lower(), name=name.lower()
        )
        log.info("guild.repo_followed", guild_id=guild_id, repository=repo.full_name)
        return repo

    async def unfollow_repository(
        self, session: AsyncSession, guild_id: str, owner: str, name: str
    ) -> None:
        config = await self.get_config(session, guild_id)
        removed = await self._repo_dao.delete_by_name(session, config.id, owner, name)
        if not removed:
            raise NotFoundError(f"repository {owner}/{name} was not being followed")
        log.info("guild.repo_unfollowed", guild_id=guild_id, repository=f"{owner}/{name}".lower())
