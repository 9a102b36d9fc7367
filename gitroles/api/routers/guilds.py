"""Guilds router — role configuration, followed repositories, sync history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.api.deps import (
    get_guild_config_service,
    get_session,
    get_sync_history_service,
    require_operator,
)
from gitroles.api.schemas.common import PageMeta, PaginatedResponse
from gitroles.api.schemas.guild import (
    FollowedRepositoryItem,
    FollowRepositoryRequest,
    GuildConfigDetail,
    SetRolesRequest,
    SyncHistoryItem,
)
from gitroles.services.guild_config_service import GuildConfigService
from gitroles.services.sync_history_service import SyncHistoryService

router = APIRouter(dependencies=[Depends(require_operator)])


async def _detail(
    session: AsyncSession,
    svc: GuildConfigService,
    history_svc: SyncHistoryService,
    guild_id: str,
) -> GuildConfigDetail:
    result = await svc.get_detail(session, guild_id)
    config = result["config"]
    latest = await history_svc.latest_for_guild(session, config.id)
    return GuildConfigDetail(
        id=config.id,
        guild_id=config.guild_id,
        contributor_role_id=config.contributor_role_id,
        stargazer_role_id=config.stargazer_role_id,
        repositories=[FollowedRepositoryItem.model_validate(r) for r in result["repositories"]],
        last_sync=SyncHistoryItem.model_validate(latest) if latest is not None else None,
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


@router.get("/{guild_id}", response_model=GuildConfigDetail)
async def get_guild(
    guild_id: str,
    session: AsyncSession = Depends(get_session),
    svc: GuildConfigService = Depends(get_guild_config_service),
    history_svc: SyncHistoryService = Depends(get_sync_history_service),
) -> GuildConfigDetail:
    return await _detail(session, svc, history_svc, guild_id)


@router.put("/{guild_id}/roles", response_model=GuildConfigDetail)
async def set_roles(
    guild_id: str,
    body: SetRolesRequest,
    session: AsyncSession = Depends(get_session),
    svc: GuildConfigService = Depends(get_guild_config_service),
    history_svc: SyncHistoryService = Depends(get_sync_history_service),
) -> GuildConfigDetail:
    # Only fields present in the body are changed.
    changes = {field: getattr(body, field) for field in body.model_fields_set}
    await svc.set_roles(session, guild_id, **changes)
    return await _detail(session, svc, history_svc, guild_id)


@router.post("/{guild_id}/repositories", response_model=FollowedRepositoryItem, status_code=201)
async def follow_repository(
    guild_id: str,
    body: FollowRepositoryRequest,
    session: AsyncSession = Depends(get_session),
    svc: GuildConfigService = Depends(get_guild_config_service),
) -> FollowedRepositoryItem:
    repo = await svc.follow_repository(session, guild_id, body.owner, body.name)
    return FollowedRepositoryItem.model_validate(repo)


@router.delete("/{guild_id}/repositories/{owner}/{name}", status_code=204)
async def unfollow_repository(
    guild_id: str,
    owner: str,
    name: str,
    session: AsyncSession = Depends(get_session),
    svc: GuildConfigService = Depends(get_guild_config_service),
) -> Response:
    await svc.unfollow_repository(session, guild_id, owner, name)
    return Response(status_code=204)


@router.get("/{guild_id}/sync-history", response_model=PaginatedResponse[SyncHistoryItem])
async def list_sync_history(
    guild_id: str,
    cursor: str | None = Query(None),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    svc: SyncHistoryService = Depends(get_sync_history_service),
) -> PaginatedResponse[SyncHistoryItem]:
    result = await svc.list_for_guild(session, guild_id, cursor=cursor, page_size=page_size)
    return PaginatedResponse(
        data=[SyncHistoryItem.model_validate(h) for h in result["data"]],
        meta=PageMeta(
            next_cursor=result["next_cursor"],
            has_more=result["has_more"],
            total=result["total"],
        ),
    )
