"""Guild configuration request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FollowedRepositoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner: str
    name: str
    full_name: str
    created_at: datetime


class SyncHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    started_at: datetime
    completed_at: datetime | None
    success: bool
    error_message: str | None
    total_processed: int
    roles_added: int
    roles_removed: int


class GuildConfigDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    guild_id: str
    contributor_role_id: str | None
    stargazer_role_id: str | None
    repositories: list[FollowedRepositoryItem] = []
    last_sync: SyncHistoryItem | None = None
    created_at: datetime
    updated_at: datetime


class SetRolesRequest(BaseModel):
    """Omitted fields are left unchanged; ``null`` clears a role."""

    contributor_role_id: str | None = None
    stargazer_role_id: str | None = None


class FollowRepositoryRequest(BaseModel):
    owner: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=100)
