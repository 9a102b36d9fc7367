"""Tests for GuildSyncHistoryDAO."""

from datetime import datetime, timedelta, timezone

import pytest

from gitroles.dao.guild_config_dao import GuildConfigDAO
from gitroles.dao.sync_history_dao import GuildSyncHistoryDAO


@pytest.fixture
def dao():
    return GuildSyncHistoryDAO()


@pytest.fixture
async def config(session):
    return await GuildConfigDAO().get_or_create(session, "g-history")


def _finalize_values(**overrides) -> dict:
    values = {
        "completed_at": datetime.now(timezone.utc),
        "success": True,
        "error_message": None,
        "total_processed": 2,
        "roles_added": 1,
        "roles_removed": 0,
    }
    values.update(overrides)
    return values


class TestFinalize:
    async def test_finalize_once(self, dao, config, session):
        row = await dao.create(session, guild_config_id=config.id)
        assert row.success is False
        assert row.completed_at is None

        assert await dao.finalize(session, row.id, **_finalize_values()) is True
        await session.refresh(row)
        assert row.success is True
        assert row.roles_added == 1

    async def test_second_finalize_refused(self, dao, config, session):
        row = await dao.create(session, guild_config_id=config.id)
        await dao.finalize(session, row.id, **_finalize_values())

        again = await dao.finalize(session, row.id, **_finalize_values(success=False))

        assert again is False
        await session.refresh(row)
        assert row.success is True


class TestListPaginated:
    async def test_newest_first_with_cursor(self, dao, config, session):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            row = await dao.create(session, guild_config_id=config.id, started_at=base)
            row.created_at = base + timedelta(minutes=i)
            await session.flush()

        page1 = await dao.list_paginated(session, config.id, page_size=3)
        assert len(page1.data) == 3
        assert page1.has_more is True
        assert page1.data[0].created_at > page1.data[-1].created_at

        page2 = await dao.list_paginated(session, config.id, cursor=page1.next_cursor, page_size=3)
        assert len(page2.data) == 2
        assert page2.has_more is False
        assert {r.id for r in page1.data}.isdisjoint({r.id for r in page2.data})

        assert await dao.count_for_guild(session, config.id) == 5

    async def test_latest(self, dao, config, session):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        await dao.create(session, guild_config_id=config.id, started_at=base)
        newest = await dao.create(
            session, guild_config_id=config.id, started_at=base + timedelta(hours=1)
        )
        assert (await dao.latest(session, config.id)).id == newest.id
