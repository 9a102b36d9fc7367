"""Account linkage schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field


class LinkDiscordRequest(BaseModel):
    discord_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    user_id: uuid.UUID | None = None


class LinkGitHubRequest(BaseModel):
    user_id: uuid.UUID
    github_id: str = Field(min_length=1)
    username: str = Field(min_length=1)


class LinkedIdentity(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    username: str


class DiscordIdentity(LinkedIdentity):
    discord_id: str


class GitHubIdentity(LinkedIdentity):
    github_id: str


class LinkedUser(BaseModel):
    user_id: uuid.UUID
    github: GitHubIdentity | None = None
    discord: DiscordIdentity | None = None
