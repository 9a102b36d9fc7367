"""Data models for the role sync engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

RoleKind = Literal["contributor", "stargazer"]

ROLE_KINDS: tuple[RoleKind, ...] = ("contributor", "stargazer")


@dataclass(frozen=True)
class MembershipFetch:
    """Outcome of one contributor/stargazer fetch.

    ``logins`` is None exactly when ``not_modified`` is True; the caller then
    substitutes its cached set.
    """

    logins: frozenset[str] | None
    etag: str | None = None
    not_modified: bool = False


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}".lower()


@dataclass(frozen=True)
class GuildSyncTarget:
    """Detached snapshot of one guild's configuration for a pass."""

    guild_config_id: uuid.UUID
    guild_id: str
    contributor_role_id: str | None
    stargazer_role_id: str | None
    repositories: tuple[RepositoryRef, ...] = ()

    def role_id(self, kind: RoleKind) -> str | None:
        return self.contributor_role_id if kind == "contributor" else self.stargazer_role_id

    @property
    def configured_kinds(self) -> tuple[RoleKind, ...]:
        return tuple(kind for kind in ROLE_KINDS if self.role_id(kind))


@dataclass
class RepoMembership:
    """Fetched membership of one repository; None means "not fetched / failed"."""

    contributors: frozenset[str] | None = None
    stargazers: frozenset[str] | None = None

    def logins(self, kind: RoleKind) -> frozenset[str]:
        value = self.contributors if kind == "contributor" else self.stargazers
        return value or frozenset()


@dataclass
class UserOutcome:
    """Per-member result, merged into the guild totals after fan-out."""

    processed: bool = False
    added: int = 0
    removed: int = 0


@dataclass
class GuildSyncResult:
    """Summary of one guild reconciliation attempt."""

    guild_id: str
    history_id: uuid.UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    success: bool = False
    error: str | None = None
    total_processed: int = 0
    roles_added: int = 0
    roles_removed: int = 0
    repository_errors: dict[str, str] = field(default_factory=dict)
