"""GuildSyncHistoryDAO — guild_sync_history table operations."""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.base import BaseDAO, Page
from gitroles.models.guild_sync_history import GuildSyncHistory


class GuildSyncHistoryDAO(BaseDAO[GuildSyncHistory]):
    model = GuildSyncHistory

    # ── read ──────────────────────────────────────────────────────────────

    async def list_paginated(
        self,
        session: AsyncSession,
        guild_config_id: uuid.UUID,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> Page[GuildSyncHistory]:
        """Paginated history for one guild, newest first."""
        query = select(GuildSyncHistory).where(GuildSyncHistory.guild_config_id == guild_config_id)
        return await self.paginate(session, query, cursor, page_size)

    async def count_for_guild(self, session: AsyncSession, guild_config_id: uuid.UUID) -> int:
        query = select(GuildSyncHistory).where(GuildSyncHistory.guild_config_id == guild_config_id)
        return await self.count(session, query)

    async def latest(
        self, session: AsyncSession, guild_config_id: uuid.UUID
    ) -> GuildSyncHistory | None:
        stmt = (
            select(GuildSyncHistory)
            .where(GuildSyncHistory.guild_config_id == guild_config_id)
            .order_by(GuildSyncHistory.started_at.desc(), GuildSyncHistory.id.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    # ── write ─────────────────────────────────────────────────────────────

    async def finalize(
        self,
        session: AsyncSession,
        pk: uuid.UUID,
        *,
        completed_at: datetime,
        success: bool,
        error_message: str | None,
        total_processed: int,
        roles_added: int,
        roles_removed: int,
    ) -> bool:
        """Close an open history row. Returns False if it was already finalized.

        Rows are append-only: the ``completed_at IS NULL`` guard makes a second
        finalize a no-op.
        """
        self._require_pk(pk)
        stmt = (
            update(GuildSyncHistory)
            .where(GuildSyncHistory.id == pk, GuildSyncHistory.completed_at.is_(None))
            .values(
                completed_at=completed_at,
                success=success,
                error_message=error_message,
                total_processed=total_processed,
                roles_added=roles_added,
                roles_removed=roles_removed,
            )
        )
        result = await session.execute(stmt)
        return (result.rowcount or 0) > 0
