"""LinkedAccountService — Discord/GitHub identity linkage."""

from __future__ import annotations

import uuid
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.account_dao import DiscordAccountDAO, GitHubAccountDAO, LinkedAccount, UserDAO
from gitroles.models.discord_account import DiscordAccount
from gitroles.models.github_account import GitHubAccount
from gitroles.services import ConflictError, NotFoundError, ValidationError


class LinkedAccountService:
    """Stateless service for linking, re-linking and unlinking identities.

    The OAuth front end calls :meth:`link_discord` first (which creates the
    logical user) and :meth:`link_github` afterwards.
    """

    def __init__(
        self,
        user_dao: UserDAO,
        github_dao: GitHubAccountDAO,
        discord_dao: DiscordAccountDAO,
    ) -> None:
        self._user_dao = user_dao
        self._github_dao = github_dao
        self._discord_dao = discord_dao

    async def link_discord(
        self,
        session: AsyncSession,
        *,
        discord_id: str,
        username: str,
        user_id: uuid.UUID | None = None,
    ) -> DiscordAccount:
        """Attach a Discord identity, creating the user when needed.

        Re-linking the same Discord id refreshes the stored username.
        Raises :class:`ConflictError` if the Discord id belongs to another user.
        """
        if not discord_id:
            raise ValidationError("discord_id is required")

        existing = await self._discord_dao.get_by_discord_id(session, discord_id)
        if existing is not None:
            if user_id is not None and existing.user_id != user_id:
                raise ConflictError("discord account is linked to another user")
            user_id = existing.user_id
        elif user_id is None:
            user = await self._user_dao.create(session)
            user_id = user.id
        elif await self._user_dao.get_by_id(session, user_id) is None:
            raise NotFoundError("user not found")

        return await self._discord_dao.upsert_for_user(
            session, user_id=user_id, discord_id=discord_id, username=username
        )

    async def link_github(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        github_id: str,
        username: str,
    ) -> GitHubAccount:
        """Attach (or refresh) the user's single GitHub identity.

        Raises :class:`NotFoundError` for an unknown user and
        :class:`ConflictError` if the GitHub id belongs to another user.
        """
        if not github_id or not username:
            raise ValidationError("github_id and username are required")
        if await self._user_dao.get_by_id(session, user_id) is None:
            raise NotFoundError("user not found")

        existing = await self._github_dao.get_by_github_id(session, github_id)
        if existing is not None and existing.user_id != user_id:
            raise ConflictError("github account is linked to another user")

        return await self._github_dao.upsert_for_user(
            session, user_id=user_id, github_id=github_id, username=username
        )

    async def unlink(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        provider: Literal["github", "discord"] | None = None,
    ) -> None:
        """Remove one side of the linkage, or the whole user when *provider* is None."""
        if provider == "github":
            removed = await self._github_dao.delete_by_user(session, user_id)
        elif provider == "discord":
            removed = await self._discord_dao.delete_by_user(session, user_id)
        else:
            removed = await self._user_dao.delete(session, user_id)
        if not removed:
            raise NotFoundError("linked account not found")

    async def get_by_user(self, session: AsyncSession, user_id: uuid.UUID) -> dict:
        if await self._user_dao.get_by_id(session, user_id) is None:
            raise NotFoundError("user not found")
        return {
            "user_id": user_id,
            "github": await self._github_dao.get_by_user(session, user_id),
            "discord": await self._discord_dao.get_by_user(session, user_id),
        }

    async def find_by_github_login(
        self, session: AsyncSession, login: str
    ) -> GitHubAccount | None:
        return await self._github_dao.get_by_login(session, login)

    async def find_by_discord_id(
        self, session: AsyncSession, discord_id: str
    ) -> DiscordAccount | None:
        return await self._discord_dao.get_by_discord_id(session, discord_id)

    async def list_fully_linked(self, session: AsyncSession) -> list[LinkedAccount]:
        """Users with both identities — half-linked users are inert for sync."""
        return await self._user_dao.list_fully_linked(session)
