"""Account DAOs — users, github_accounts and discord_accounts tables."""

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.base import BaseDAO
from gitroles.models.discord_account import DiscordAccount
from gitroles.models.github_account import GitHubAccount
from gitroles.models.user import User


@dataclass(frozen=True)
class LinkedAccount:
    """A user with both sides linked — the only shape the sync engine sees."""

    user_id: uuid.UUID
    github_login: str
    discord_id: str


class UserDAO(BaseDAO[User]):
    model = User

    async def list_fully_linked(self, session: AsyncSession) -> list[LinkedAccount]:
        """Return users that have both a GitHub and a Discord account."""
        stmt = (
            select(User.id, GitHubAccount.username, DiscordAccount.discord_id)
            .join(GitHubAccount, GitHubAccount.user_id == User.id)
            .join(DiscordAccount, DiscordAccount.user_id == User.id)
            .order_by(User.created_at, User.id)
        )
        result = await session.execute(stmt)
        return [
            LinkedAccount(user_id=row[0], github_login=row[1], discord_id=row[2])
            for row in result
        ]


class GitHubAccountDAO(BaseDAO[GitHubAccount]):
    model = GitHubAccount

    async def get_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> GitHubAccount | None:
        return await self.get_by_field(session, user_id=user_id)

    async def get_by_github_id(self, session: AsyncSession, github_id: str) -> GitHubAccount | None:
        return await self.get_by_field(session, github_id=github_id)

    async def get_by_login(self, session: AsyncSession, login: str) -> GitHubAccount | None:
        """Case-insensitive lookup by GitHub username."""
        stmt = select(GitHubAccount).where(func.lower(GitHubAccount.username) == login.lower())
        result = await session.execute(stmt)
        return result.scalars().first()

    async def upsert_for_user(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        github_id: str,
        username: str,
    ) -> GitHubAccount:
        """Insert the user's GitHub account, or refresh it on re-link."""
        stmt = (
            insert(GitHubAccount)
            .values(user_id=user_id, github_id=github_id, username=username)
            .on_conflict_do_update(
                index_elements=["user_id"],
                set_={"github_id": github_id, "username": username, "updated_at": func.now()},
            )
            .returning(GitHubAccount)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().one()

    async def delete_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> bool:
        account = await self.get_by_user(session, user_id)
        if account is None:
            return False
        return await self.delete(session, account.id)


class DiscordAccountDAO(BaseDAO[DiscordAccount]):
    model = DiscordAccount

    async def get_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> DiscordAccount | None:
        return await self.get_by_field(session, user_id=user_id)

    async def get_by_discord_id(
        self, session: AsyncSession, discord_id: str
    ) -> DiscordAccount | None:
        return await self.get_by_field(session, discord_id=discord_id)

    async def upsert_for_user(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        discord_id: str,
        username: str,
    ) -> DiscordAccount:
        """Insert the user's Discord account, or refresh it on re-link."""
        stmt = (
            insert(DiscordAccount)
            .values(user_id=user_id, discord_id=discord_id, username=username)
            .on_conflict_do_update(
                index_elements=["user_id"],
                set_={"discord_id": discord_id, "username": username, "updated_at": func.now()},
            )
            .returning(DiscordAccount)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().one()

    async def delete_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> bool:
        account = await self.get_by_user(session, user_id)
        if account is None:
            return False
        return await self.delete(session, account.id)
