"""Tests for the account DAOs."""

import pytest

from gitroles.dao.account_dao import DiscordAccountDAO, GitHubAccountDAO, UserDAO


@pytest.fixture
def user_dao():
    return UserDAO()


@pytest.fixture
def github_dao():
    return GitHubAccountDAO()


@pytest.fixture
def discord_dao():
    return DiscordAccountDAO()


async def test_upsert_refreshes_username(user_dao, github_dao, session):
    user = await user_dao.create(session)
    await github_dao.upsert_for_user(session, user_id=user.id, github_id="7", username="old")
    account = await github_dao.upsert_for_user(
        session, user_id=user.id, github_id="7", username="New"
    )
    assert account.username == "New"
    assert (await github_dao.get_by_login(session, "new")).user_id == user.id


async def test_list_fully_linked_skips_half_linked(user_dao, github_dao, discord_dao, session):
    full = await user_dao.create(session)
    await github_dao.upsert_for_user(session, user_id=full.id, github_id="g1", username="Alice")
    await discord_dao.upsert_for_user(session, user_id=full.id, discord_id="d1", username="a")

    half = await user_dao.create(session)
    await discord_dao.upsert_for_user(session, user_id=half.id, discord_id="d2", username="b")

    linked = await user_dao.list_fully_linked(session)
    by_user = {a.user_id: a for a in linked}
    assert full.id in by_user
    assert half.id not in by_user
    assert by_user[full.id].github_login == "Alice"
    assert by_user[full.id].discord_id == "d1"


async def test_delete_by_user(user_dao, discord_dao, session):
    user = await user_dao.create(session)
    await discord_dao.upsert_for_user(session, user_id=user.id, discord_id="d9", username="x")
    assert await discord_dao.delete_by_user(session, user.id) is True
    assert await discord_dao.delete_by_user(session, user.id) is False
