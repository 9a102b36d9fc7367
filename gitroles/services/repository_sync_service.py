"""RepositorySyncService — ETag bookkeeping and cached membership per repository."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.repository_sync_dao import (
    MembershipKind,
    RepositoryMemberDAO,
    RepositorySyncStateDAO,
)
from gitroles.models.repository_sync_state import RepositorySyncState

_MAX_ERROR_LENGTH = 2000


class RepositorySyncService:
    """Stateless service over the shared repository cache.

    Invariant: a stored ETag for a kind always describes exactly the cached
    logins of that kind, because :meth:`record_fetch` writes both in the
    caller's transaction.
    """

    def __init__(
        self,
        state_dao: RepositorySyncStateDAO,
        member_dao: RepositoryMemberDAO,
    ) -> None:
        self._state_dao = state_dao
        self._member_dao = member_dao

    async def get_state(
        self, session: AsyncSession, full_name: str
    ) -> RepositorySyncState | None:
        return await self._state_dao.get_by_full_name(session, full_name)

    async def get_etag(
        self, session: AsyncSession, full_name: str, kind: MembershipKind
    ) -> str | None:
        state = await self.get_state(session, full_name)
        if state is None:
            return None
        return getattr(state, f"{kind}_etag")

    async def get_cached_logins(
        self, session: AsyncSession, full_name: str, kind: MembershipKind
    ) -> set[str]:
        return await self._member_dao.list_logins(session, full_name, kind)

    async def record_fetch(
        self,
        session: AsyncSession,
        full_name: str,
        kind: MembershipKind,
        logins: set[str] | frozenset[str],
        etag: str | None,
    ) -> None:
        """Store a fresh (non-304) result: replace the cache and the ETag."""
        await self._state_dao.upsert(
            session, full_name, kind, synced_at=_now(), etag=etag, error=None
        )
        await self._member_dao.replace(session, full_name, kind, logins)

    async def record_not_modified(
        self, session: AsyncSession, full_name: str, kind: MembershipKind
    ) -> None:
        await self._state_dao.upsert(session, full_name, kind, synced_at=_now(), error=None)

    async def record_error(
        self, session: AsyncSession, full_name: str, kind: MembershipKind, error: str
    ) -> None:
        """Remember a failed fetch; cache and ETag are left untouched."""
        await self._state_dao.upsert(
            session, full_name, kind, error=f"{kind}: {error}"[:_MAX_ERROR_LENGTH]
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)
