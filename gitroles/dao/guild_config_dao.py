"""GuildConfigDAO / FollowedRepositoryDAO — guild sync configuration."""

import uuid

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.base import BaseDAO
from gitroles.models.followed_repository import FollowedRepository
from gitroles.models.guild_config import GuildConfig

_SENTINEL = object()  # distinguish "not passed" from explicit None


class GuildConfigDAO(BaseDAO[GuildConfig]):
    model = GuildConfig

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_guild_id(self, session: AsyncSession, guild_id: str) -> GuildConfig | None:
        return await self.get_by_field(session, guild_id=guild_id)

    async def list_eligible_for_sync(self, session: AsyncSession) -> list[GuildConfig]:
        """Guilds with at least one role configured and at least one followed repo."""
        has_repo = (
            select(FollowedRepository.id)
            .where(FollowedRepository.guild_config_id == GuildConfig.id)
            .exists()
        )
        stmt = (
            select(GuildConfig)
            .where(
                or_(
                    GuildConfig.contributor_role_id.is_not(None),
                    GuildConfig.stargazer_role_id.is_not(None),
                ),
                has_repo,
            )
            .order_by(GuildConfig.guild_id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def get_or_create(self, session: AsyncSession, guild_id: str) -> GuildConfig:
        """Insert a config row for *guild_id* or return the existing one."""
        stmt = (
            insert(GuildConfig)
            .values(guild_id=guild_id)
            .on_conflict_do_nothing(index_elements=["guild_id"])
            .returning(GuildConfig)
        )
        result = await session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            # Conflict: config already existed, fetch it
            return await self.get_by_guild_id(session, guild_id)
        return row

    async def set_roles(
        self,
        session: AsyncSession,
        pk: uuid.UUID,
        *,
        contributor_role_id: str | None = _SENTINEL,
        stargazer_role_id: str | None = _SENTINEL,
    ) -> None:
        """Set or clear role ids. Pass ``None`` explicitly to clear a role."""
        self._require_pk(pk)
        values: dict = {}
        if contributor_role_id is not _SENTINEL:
            values["contributor_role_id"] = contributor_role_id
        if stargazer_role_id is not _SENTINEL:
            values["stargazer_role_id"] = stargazer_role_id
        if not values:
            return
        stmt = update(GuildConfig).where(GuildConfig.id == pk).values(**values)
        await session.execute(stmt)


class FollowedRepositoryDAO(BaseDAO[FollowedRepository]):
    model = FollowedRepository

    async def list_by_guild_config(
        self, session: AsyncSession, guild_config_id: uuid.UUID
    ) -> list[FollowedRepository]:
        stmt = (
            select(FollowedRepository)
            .where(FollowedRepository.guild_config_id == guild_config_id)
            .order_by(FollowedRepository.created_at, FollowedRepository.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_guild_configs(
        self, session: AsyncSession, guild_config_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, list[FollowedRepository]]:
        """Followed repositories for many guilds in one query."""
        if not guild_config_ids:
            return {}
        stmt = (
            select(FollowedRepository)
            .where(FollowedRepository.guild_config_id.in_(guild_config_ids))
            .order_by(FollowedRepository.created_at, FollowedRepository.id)
        )
        result = await session.execute(stmt)
        grouped: dict[uuid.UUID, list[FollowedRepository]] = {pk: [] for pk in guild_config_ids}
        for repo in result.scalars().all():
            grouped[repo.guild_config_id].append(repo)
        return grouped

    async def find(
        self, session: AsyncSession, guild_config_id: uuid.UUID, owner: str, name: str
    ) -> FollowedRepository | None:
        return await self.get_by_field(
            session,
            guild_config_id=guild_config_id,
            owner=owner.lower(),
            name=name.lower(),
        )

    async def delete_by_name(
        self, session: AsyncSession, guild_config_id: uuid.UUID, owner: str, name: str
    ) -> int:
        """Delete a followed repository; returns the number of rows removed."""
        stmt = delete(FollowedRepository).where(
            FollowedRepository.guild_config_id == guild_config_id,
            FollowedRepository.owner == owner.lower(),
            FollowedRepository.name == name.lower(),
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
