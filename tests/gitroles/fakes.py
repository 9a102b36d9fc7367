"""In-memory stand-ins for the Discord API, the DB session and the loader."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from gitroles.dao.account_dao import LinkedAccount
from gitroles.engines.role_sync.discord_client import (
    MANAGE_ROLES,
    DiscordGuild,
    DiscordMember,
    DiscordRole,
)

GUILD_ID = "100"
BOT_ID = "900"
BOT_ROLE_ID = "901"
CONTRIBUTOR_ROLE_ID = "201"
STARGAZER_ROLE_ID = "202"


class FakeSession:
    """Async-context-manager session whose ``begin()`` is also a no-op context."""

    def begin(self) -> FakeSession:
        return self

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


def fake_session_factory() -> FakeSession:
    return FakeSession()


def make_guild(
    *,
    bot_position: int = 10,
    contributor_position: int = 2,
    stargazer_position: int = 3,
    bot_permissions: int = MANAGE_ROLES,
    roles: tuple[DiscordRole, ...] | None = None,
) -> DiscordGuild:
    if roles is None:
        roles = (
            DiscordRole(id=GUILD_ID, name="@everyone", position=0),
            DiscordRole(
                id=BOT_ROLE_ID, name="bot", position=bot_position, permissions=bot_permissions
            ),
            DiscordRole(id=CONTRIBUTOR_ROLE_ID, name="Contributor", position=contributor_position),
            DiscordRole(id=STARGAZER_ROLE_ID, name="Stargazer", position=stargazer_position),
        )
    return DiscordGuild(id=GUILD_ID, name="test guild", owner_id="1", roles=roles)


class FakeDiscordClient:
    """Keeps member role sets in memory and records every mutation."""

    def __init__(self, guild: DiscordGuild | None = None) -> None:
        self.guild = guild if guild is not None else make_guild()
        self.members: dict[str, set[str]] = {BOT_ID: {BOT_ROLE_ID}}
        self.failing_users: set[str] = set()
        self.added: list[tuple[str, str]] = []
        self.removed: list[tuple[str, str]] = []

    def add_member(self, user_id: str, *role_ids: str) -> None:
        self.members[user_id] = set(role_ids)

    async def get_guild(self, guild_id: str) -> DiscordGuild | None:
        if self.guild is None or self.guild.id != guild_id:
            return None
        return self.guild

    async def get_member(self, guild_id: str, user_id: str) -> DiscordMember | None:
        if user_id in self.failing_users:
            raise RuntimeError(f"discord exploded for {user_id}")
        roles = self.members.get(user_id)
        if roles is None:
            return None
        return DiscordMember(user_id=user_id, role_ids=frozenset(roles))

    async def get_bot_member(self, guild_id: str) -> DiscordMember | None:
        return await self.get_member(guild_id, BOT_ID)

    async def add_role(self, guild_id: str, user_id: str, role_id: str, reason=None) -> None:
        self.members[user_id].add(role_id)
        self.added.append((user_id, role_id))

    async def remove_role(self, guild_id: str, user_id: str, role_id: str, reason=None) -> None:
        self.members[user_id].discard(role_id)
        self.removed.append((user_id, role_id))

    @property
    def mutations(self) -> int:
        return len(self.added) + len(self.removed)


class FakeLoader:
    """Serves membership from a dict keyed by ``(full_name, kind)``."""

    def __init__(self, data: dict | None = None, errors: dict | None = None) -> None:
        self.data = data or {}
        self.errors: dict[str, str] = errors or {}
        self.calls: list[tuple[str, str]] = []

    async def load(self, repo, kind):
        self.calls.append((repo.full_name, kind))
        return self.data.get((repo.full_name, kind))


def linked(discord_id: str, github_login: str) -> LinkedAccount:
    return LinkedAccount(user_id=uuid.uuid4(), github_login=github_login, discord_id=discord_id)


def account_service(*accounts: LinkedAccount) -> MagicMock:
    svc = MagicMock()
    svc.list_fully_linked = AsyncMock(return_value=list(accounts))
    return svc


def history_service() -> MagicMock:
    svc = MagicMock()
    svc.start = AsyncMock(side_effect=lambda *a, **kw: SimpleNamespace(id=uuid.uuid4()))
    svc.finalize = AsyncMock()
    return svc
