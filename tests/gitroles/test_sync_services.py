"""Tests for RepositorySyncService and SyncHistoryService."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from gitroles.dao.base import Page
from gitroles.dao.guild_config_dao import GuildConfigDAO
from gitroles.dao.repository_sync_dao import RepositoryMemberDAO, RepositorySyncStateDAO
from gitroles.dao.sync_history_dao import GuildSyncHistoryDAO
from gitroles.models.guild_config import GuildConfig
from gitroles.models.guild_sync_history import GuildSyncHistory
from gitroles.models.repository_sync_state import RepositorySyncState
from gitroles.services import ConflictError, NotFoundError
from gitroles.services.repository_sync_service import RepositorySyncService
from gitroles.services.sync_history_service import SyncHistoryService


@pytest.fixture
def session():
    return AsyncMock()


# ---------------------------------------------------------------------------
# RepositorySyncService
# ---------------------------------------------------------------------------


@pytest.fixture
def state_dao():
    return AsyncMock(spec=RepositorySyncStateDAO)


@pytest.fixture
def member_dao():
    return AsyncMock(spec=RepositoryMemberDAO)


@pytest.fixture
def repo_svc(state_dao, member_dao):
    return RepositorySyncService(state_dao, member_dao)


class TestRepositorySyncService:
    async def test_get_etag_per_kind(self, repo_svc, state_dao, session):
        state_dao.get_by_full_name.return_value = RepositorySyncState(
            repository_full_name="o/r", contributor_etag='"c"', stargazer_etag=None
        )
        assert await repo_svc.get_etag(session, "o/r", "contributor") == '"c"'
        assert await repo_svc.get_etag(session, "o/r", "stargazer") is None

    async def test_get_etag_without_state(self, repo_svc, state_dao, session):
        state_dao.get_by_full_name.return_value = None
        assert await repo_svc.get_etag(session, "o/r", "contributor") is None

    async def test_record_fetch_writes_etag_then_members(
        self, repo_svc, state_dao, member_dao, session
    ):
        await repo_svc.record_fetch(session, "o/r", "stargazer", {"amy"}, '"e"')

        kwargs = state_dao.upsert.await_args.kwargs
        assert kwargs["etag"] == '"e"'
        assert kwargs["error"] is None
        assert kwargs["synced_at"] is not None
        member_dao.replace.assert_awaited_once_with(session, "o/r", "stargazer", {"amy"})

    async def test_record_not_modified_keeps_etag(self, repo_svc, state_dao, member_dao, session):
        await repo_svc.record_not_modified(session, "o/r", "contributor")

        assert "etag" not in state_dao.upsert.await_args.kwargs
        member_dao.replace.assert_not_awaited()

    async def test_record_error_is_prefixed_and_truncated(self, repo_svc, state_dao, session):
        await repo_svc.record_error(session, "o/r", "contributor", "x" * 5000)

        error = state_dao.upsert.await_args.kwargs["error"]
        assert error.startswith("contributor: x")
        assert len(error) == 2000
        assert "etag" not in state_dao.upsert.await_args.kwargs


# ---------------------------------------------------------------------------
# SyncHistoryService
# ---------------------------------------------------------------------------


@pytest.fixture
def history_dao():
    return AsyncMock(spec=GuildSyncHistoryDAO)


@pytest.fixture
def config_dao():
    return AsyncMock(spec=GuildConfigDAO)


@pytest.fixture
def history_svc(history_dao, config_dao):
    return SyncHistoryService(history_dao, config_dao)


class TestSyncHistoryService:
    async def test_start(self, history_svc, history_dao, session):
        config_id = uuid.uuid4()
        started = datetime(2026, 1, 1, tzinfo=timezone.utc)
        await history_svc.start(session, config_id, started)
        history_dao.create.assert_awaited_once_with(
            session, guild_config_id=config_id, started_at=started
        )

    async def test_finalize(self, history_svc, history_dao, session):
        history_dao.finalize.return_value = True
        history_id = uuid.uuid4()

        await history_svc.finalize(session, history_id, success=True, roles_added=3)

        kwargs = history_dao.finalize.await_args.kwargs
        assert kwargs["success"] is True
        assert kwargs["roles_added"] == 3
        assert kwargs["completed_at"] is not None

    async def test_finalize_twice_conflicts(self, history_svc, history_dao, session):
        history_dao.finalize.return_value = False
        with pytest.raises(ConflictError):
            await history_svc.finalize(session, uuid.uuid4(), success=False)

    async def test_list_for_unknown_guild(self, history_svc, config_dao, session):
        config_dao.get_by_guild_id.return_value = None
        with pytest.raises(NotFoundError):
            await history_svc.list_for_guild(session, "100")

    async def test_list_for_guild(self, history_svc, config_dao, history_dao, session):
        config = GuildConfig(id=uuid.uuid4(), guild_id="100")
        config_dao.get_by_guild_id.return_value = config
        row = GuildSyncHistory(guild_config_id=config.id)
        history_dao.list_paginated.return_value = Page(
            data=[row], next_cursor="abc", has_more=True
        )
        history_dao.count_for_guild.return_value = 5

        result = await history_svc.list_for_guild(session, "100", page_size=1)

        assert result == {"data": [row], "next_cursor": "abc", "has_more": True, "total": 5}
        history_dao.list_paginated.assert_awaited_once_with(session, config.id, None, 1)


def test_last_sync_error_joins_both_kinds():
    state = RepositorySyncState(
        repository_full_name="o/r",
        contributor_error="contributor: timeout",
        stargazer_error="stargazer: 502",
    )
    assert state.last_sync_error == "contributor: timeout; stargazer: 502"
    state.contributor_error = None
    assert state.last_sync_error == "stargazer: 502"
    state.stargazer_error = None
    assert state.last_sync_error is None
