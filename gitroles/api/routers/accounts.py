"""Accounts router — record identity linkage from the OAuth front end."""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.api.deps import get_linked_account_service, get_session, require_operator
from gitroles.api.schemas.account import (
    DiscordIdentity,
    GitHubIdentity,
    LinkDiscordRequest,
    LinkGitHubRequest,
    LinkedUser,
)
from gitroles.services import NotFoundError
from gitroles.services.linked_account_service import LinkedAccountService

router = APIRouter(dependencies=[Depends(require_operator)])


@router.post("/discord", response_model=DiscordIdentity)
async def link_discord(
    body: LinkDiscordRequest,
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> DiscordIdentity:
    account = await svc.link_discord(
        session, discord_id=body.discord_id, username=body.username, user_id=body.user_id
    )
    return DiscordIdentity.model_validate(account)


@router.post("/github", response_model=GitHubIdentity)
async def link_github(
    body: LinkGitHubRequest,
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> GitHubIdentity:
    account = await svc.link_github(
        session, user_id=body.user_id, github_id=body.github_id, username=body.username
    )
    return GitHubIdentity.model_validate(account)


@router.get("/discord/{discord_id}", response_model=DiscordIdentity)
async def get_discord_identity(
    discord_id: str,
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> DiscordIdentity:
    account = await svc.find_by_discord_id(session, discord_id)
    if account is None:
        raise NotFoundError(f"discord account {discord_id} is not linked")
    return DiscordIdentity.model_validate(account)


@router.get("/github/{login}", response_model=GitHubIdentity)
async def get_github_identity(
    login: str,
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> GitHubIdentity:
    account = await svc.find_by_github_login(session, login)
    if account is None:
        raise NotFoundError(f"github account {login} is not linked")
    return GitHubIdentity.model_validate(account)


@router.get("/{user_id}", response_model=LinkedUser)
async def get_linked_user(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> LinkedUser:
    result = await svc.get_by_user(session, user_id)
    return LinkedUser(
        user_id=result["user_id"],
        github=GitHubIdentity.model_validate(result["github"]) if result["github"] else None,
        discord=DiscordIdentity.model_validate(result["discord"]) if result["discord"] else None,
    )


@router.delete("/{user_id}", status_code=204)
async def unlink(
    user_id: uuid.UUID,
    provider: Literal["github", "discord"] | None = Query(None),
    session: AsyncSession = Depends(get_session),
    svc: LinkedAccountService = Depends(get_linked_account_service),
) -> Response:
    await svc.unlink(session, user_id, provider)
    return Response(status_code=204)
