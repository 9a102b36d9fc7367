"""RepositorySyncStateDAO / RepositoryMemberDAO — shared GitHub membership cache."""

from datetime import datetime
from typing import Literal

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from gitroles.dao.base import BaseDAO
from gitroles.models.repository_member import RepositoryMember
from gitroles.models.repository_sync_state import RepositorySyncState

MembershipKind = Literal["contributor", "stargazer"]

_SENTINEL = object()  # distinguish "not passed" from explicit None


class RepositorySyncStateDAO(BaseDAO[RepositorySyncState]):
    model = RepositorySyncState

    async def get_by_full_name(
        self, session: AsyncSession, full_name: str
    ) -> RepositorySyncState | None:
        return await self.get_by_field(session, repository_full_name=full_name)

    async def upsert(
        self,
        session: AsyncSession,
        full_name: str,
        kind: MembershipKind,
        *,
        synced_at: datetime | None = None,
        etag: str | None = _SENTINEL,
        error: str | None = _SENTINEL,
    ) -> None:
        """Create the state row lazily and update the columns for *kind*.

        ``synced_at`` is only written when given, so a failed attempt keeps the
        previous successful timestamp. ``etag``/``error`` are written to the
        columns of *kind* when passed, including an explicit ``None`` to clear
        them. The other kind is never touched.
        """
        values: dict = {}
        if synced_at is not None:
            values[f"last_{kind}_sync"] = synced_at
        if etag is not _SENTINEL:
            values[f"{kind}_etag"] = etag
        if error is not _SENTINEL:
            values[f"{kind}_error"] = error

        stmt = insert(RepositorySyncState).values(repository_full_name=full_name, **values)
        if values:
            stmt = stmt.on_conflict_do_update(
                index_elements=["repository_full_name"], set_=values
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["repository_full_name"])
        await session.execute(stmt)


class RepositoryMemberDAO(BaseDAO[RepositoryMember]):
    model = RepositoryMember

    async def list_logins(
        self, session: AsyncSession, full_name: str, kind: MembershipKind
    ) -> set[str]:
        stmt = select(RepositoryMember.login).where(
            RepositoryMember.repository_full_name == full_name,
            RepositoryMember.kind == kind,
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def replace(
        self,
        session: AsyncSession,
        full_name: str,
        kind: MembershipKind,
        logins: set[str] | frozenset[str],
    ) -> int:
        """Replace the cached logins of *kind* for a repository (no merge).

        The state row must already exist (FK). Returns the number of rows
        inserted.
        """
        await session.execute(
            delete(RepositoryMember).where(
                RepositoryMember.repository_full_name == full_name,
                RepositoryMember.kind == kind,
            )
        )
        if not logins:
            return 0
        rows = [
            {"repository_full_name": full_name, "kind": kind, "login": login}
            for login in sorted(logins)
        ]
        await session.execute(insert(RepositoryMember), rows)
        return len(rows)
