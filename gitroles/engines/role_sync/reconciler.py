"""GuildReconciler — one guild's pass: preconditions, fetch, diff, mutate, audit."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitroles.dao.account_dao import LinkedAccount
from gitroles.engines.role_sync.decision import decide
from gitroles.engines.role_sync.discord_client import (
    DiscordClient,
    DiscordGuild,
    can_manage_roles,
    top_role_position,
)
from gitroles.engines.role_sync.membership import MembershipLoader
from gitroles.engines.role_sync.models import (
    GuildSyncResult,
    GuildSyncTarget,
    RepoMembership,
    RepositoryRef,
    UserOutcome,
)
from gitroles.services.linked_account_service import LinkedAccountService
from gitroles.services.sync_history_service import SyncHistoryService

log = structlog.get_logger("gitroles.engine")

_MEMBER_CONCURRENCY = 5


class GuildPreconditionError(Exception):
    """The guild cannot be reconciled as configured; nothing was changed."""


class GuildReconciler:
    """Reconcile the roles of one guild against GitHub membership.

    States: started → fetching data → processing users → completed | failed.
    Every attempt leaves exactly one finalized history row.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        discord: DiscordClient,
        linked_account_service: LinkedAccountService,
        sync_history_service: SyncHistoryService,
        member_concurrency: int = _MEMBER_CONCURRENCY,
    ) -> None:
        self._session_factory = session_factory
        self._discord = discord
        self._account_service = linked_account_service
        self._history_service = sync_history_service
        self._member_concurrency = member_concurrency

    async def reconcile(
        self, target: GuildSyncTarget, loader: MembershipLoader
    ) -> GuildSyncResult:
        result = GuildSyncResult(guild_id=target.guild_id, started_at=_now())
        async with self._session_factory() as session:
            async with session.begin():
                history = await self._history_service.start(
                    session, target.guild_config_id, result.started_at
                )
                result.history_id = history.id
        log.info("reconcile.started", guild_id=target.guild_id)

        try:
            guild = await self._check_preconditions(target)
            membership = await self._fetch_membership(target, loader)
            result.repository_errors = {
                repo.full_name: loader.errors[repo.full_name]
                for repo in target.repositories
                if repo.full_name in loader.errors
            }
            await self._process_users(guild, target, membership, result)
            result.success = True
        except GuildPreconditionError as exc:
            result.error = str(exc)
            log.warning("reconcile.precondition_failed", guild_id=target.guild_id, error=str(exc))
        except Exception as exc:
            result.error = str(exc) or type(exc).__name__
            log.exception("reconcile.failed", guild_id=target.guild_id)
        except asyncio.CancelledError:
            result.error = "sync cancelled"
            log.warning("reconcile.cancelled", guild_id=target.guild_id)
            raise
        finally:
            result.completed_at = _now()
            await asyncio.shield(self._finalize(result))

        log.info(
            "reconcile.completed",
            guild_id=target.guild_id,
            success=result.success,
            processed=result.total_processed,
            roles_added=result.roles_added,
            roles_removed=result.roles_removed,
        )
        return result

    # ── phases ─────────────────────────────────────────────────────────────

    async def _check_preconditions(self, target: GuildSyncTarget) -> DiscordGuild:
        guild = await self._discord.get_guild(target.guild_id)
        if guild is None:
            raise GuildPreconditionError(f"guild {target.guild_id} not found or not accessible")

        bot = await self._discord.get_bot_member(target.guild_id)
        if bot is None:
            raise GuildPreconditionError(f"bot is not a member of guild {target.guild_id}")
        if not can_manage_roles(guild, bot):
            raise GuildPreconditionError("bot lacks the Manage Roles permission")

        bot_top = top_role_position(guild, bot)
        for kind in target.configured_kinds:
            role_id = target.role_id(kind)
            role = guild.role(role_id)
            if role is None:
                raise GuildPreconditionError(f"{kind} role {role_id} no longer exists")
            if bot_top <= role.position:
                raise GuildPreconditionError(
                    f"bot's highest role must be above the {kind} role '{role.name}'"
                )
        return guild

    async def _fetch_membership(
        self, target: GuildSyncTarget, loader: MembershipLoader
    ) -> dict[str, RepoMembership]:
        kinds = target.configured_kinds

        async def _one(repo: RepositoryRef) -> tuple[str, RepoMembership]:
            loaded = await asyncio.gather(*(loader.load(repo, kind) for kind in kinds))
            by_kind = dict(zip(kinds, loaded))
            return repo.full_name, RepoMembership(
                contributors=by_kind.get("contributor"),
                stargazers=by_kind.get("stargazer"),
            )

        pairs = await asyncio.gather(*(_one(repo) for repo in target.repositories))
        return dict(pairs)

    async def _process_users(
        self,
        guild: DiscordGuild,
        target: GuildSyncTarget,
        membership: dict[str, RepoMembership],
        result: GuildSyncResult,
    ) -> None:
        async with self._session_factory() as session:
            accounts = await self._account_service.list_fully_linked(session)

        sem = asyncio.Semaphore(self._member_concurrency)

        async def _run_one(account: LinkedAccount) -> UserOutcome:
            async with sem:
                return await self._process_member(guild, target, account, membership)

        outcomes = await asyncio.gather(*(_run_one(a) for a in accounts))
        for outcome in outcomes:
            result.total_processed += int(outcome.processed)
            result.roles_added += outcome.added
            result.roles_removed += outcome.removed

    async def _process_member(
        self,
        guild: DiscordGuild,
        target: GuildSyncTarget,
        account: LinkedAccount,
        membership: dict[str, RepoMembership],
    ) -> UserOutcome:
        """Apply grants/revokes for one user; failures are logged, not raised."""
        outcome = UserOutcome()
        try:
            member = await self._discord.get_member(guild.id, account.discord_id)
            if member is None:
                return outcome
            outcome.processed = True

            for kind in target.configured_kinds:
                role_id = target.role_id(kind)
                wanted = decide(kind, account.github_login, target, membership)
                held = member.has_role(role_id)
                if wanted and not held:
                    await self._discord.add_role(
                        guild.id, member.user_id, role_id, reason=f"GitHub {kind} role sync"
                    )
                    outcome.added += 1
                    log.info(
                        "reconcile.role_added",
                        guild_id=guild.id,
                        user_id=member.user_id,
                        github_login=account.github_login,
                        kind=kind,
                    )
                elif held and not wanted:
                    await self._discord.remove_role(
                        guild.id, member.user_id, role_id, reason=f"GitHub {kind} role sync"
                    )
                    outcome.removed += 1
                    log.info(
                        "reconcile.role_removed",
                        guild_id=guild.id,
                        user_id=member.user_id,
                        github_login=account.github_login,
                        kind=kind,
                    )
        except Exception as exc:
            log.warning(
                "reconcile.user_failed",
                guild_id=guild.id,
                discord_id=account.discord_id,
                error=str(exc),
            )
        return outcome

    async def _finalize(self, result: GuildSyncResult) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._history_service.finalize(
                        session,
                        result.history_id,
                        success=result.success,
                        error_message=result.error,
                        total_processed=result.total_processed,
                        roles_added=result.roles_added,
                        roles_removed=result.roles_removed,
                        completed_at=result.completed_at,
                    )
        except Exception:
            log.exception("reconcile.history_finalize_failed", guild_id=result.guild_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)
