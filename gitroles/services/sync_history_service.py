"""SyncHistoryService — append-only audit trail of guild reconciliations."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.guild_config_dao import GuildConfigDAO
from gitroles.dao.sync_history_dao import GuildSyncHistoryDAO
from gitroles.models.guild_sync_history import GuildSyncHistory
from gitroles.services import ConflictError, NotFoundError


class SyncHistoryService:
    """Stateless service for sync history records."""

    def __init__(self, history_dao: GuildSyncHistoryDAO, guild_config_dao: GuildConfigDAO) -> None:
        self._history_dao = history_dao
        self._config_dao = guild_config_dao

    async def start(
        self,
        session: AsyncSession,
        guild_config_id: uuid.UUID,
        started_at: datetime | None = None,
    ) -> GuildSyncHistory:
        return await self._history_dao.create(
            session,
            guild_config_id=guild_config_id,
            started_at=started_at or datetime.now(timezone.utc),
        )

    async def finalize(
        self,
        session: AsyncSession,
        history_id: uuid.UUID,
        *,
        success: bool,
        error_message: str | None = None,
        total_processed: int = 0,
        roles_added: int = 0,
        roles_removed: int = 0,
        completed_at: datetime | None = None,
    ) -> None:
        """Close a history record.

        Raises :class:`ConflictError` if the record was already finalized.
        """
        updated = await self._history_dao.finalize(
            session,
            history_id,
            completed_at=completed_at or datetime.now(timezone.utc),
            success=success,
            error_message=error_message,
            total_processed=total_processed,
            roles_added=roles_added,
            roles_removed=roles_removed,
        )
        if not updated:
            raise ConflictError(f"sync history {history_id} is already finalized")

    async def list_for_guild(
        self,
        session: AsyncSession,
        guild_id: str,
        cursor: str | None = None,
        page_size: int = 20,
    ) -> dict:
        """Return paginated history for a Discord guild id, newest first."""
        config = await self._config_dao.get_by_guild_id(session, guild_id)
        if config is None:
            raise NotFoundError(f"no configuration for guild {guild_id}")
        page = await self._history_dao.list_paginated(session, config.id, cursor, page_size)
        total = await self._history_dao.count_for_guild(session, config.id)
        return {
            "data": page.data,
            "next_cursor": page.next_cursor,
            "has_more": page.has_more,
            "total": total,
        }

    async def latest_for_guild(
        self, session: AsyncSession, guild_config_id: uuid.UUID
    ) -> GuildSyncHistory | None:
        return await self._history_dao.latest(session, guild_config_id)
