"""Dependency injection — session, operator auth, service and engine singletons."""

from __future__ import annotations

import hmac
import os
from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from gitroles.core.database import create_engine, create_session_factory
from gitroles.dao.account_dao import DiscordAccountDAO, GitHubAccountDAO, UserDAO
from gitroles.dao.guild_config_dao import FollowedRepositoryDAO, GuildConfigDAO
from gitroles.dao.repository_sync_dao import RepositoryMemberDAO, RepositorySyncStateDAO
from gitroles.dao.sync_history_dao import GuildSyncHistoryDAO
from gitroles.engines.role_sync.discord_client import DiscordClient
from gitroles.engines.role_sync.github_client import GitHubClient
from gitroles.engines.role_sync.reconciler import GuildReconciler
from gitroles.engines.role_sync.runner import RoleSyncRunner
from gitroles.scheduler import RoleSyncScheduler
from gitroles.services import AuthenticationError, PermissionDeniedError
from gitroles.services.guild_config_service import GuildConfigService
from gitroles.services.linked_account_service import LinkedAccountService
from gitroles.services.repository_sync_service import RepositorySyncService
from gitroles.services.sync_history_service import SyncHistoryService

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_user_dao = UserDAO()
_github_account_dao = GitHubAccountDAO()
_discord_account_dao = DiscordAccountDAO()
_guild_config_dao = GuildConfigDAO()
_followed_repository_dao = FollowedRepositoryDAO()
_repository_sync_state_dao = RepositorySyncStateDAO()
_repository_member_dao = RepositoryMemberDAO()
_sync_history_dao = GuildSyncHistoryDAO()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------
_linked_account_service = LinkedAccountService(
    _user_dao, _github_account_dao, _discord_account_dao
)
_guild_config_service = GuildConfigService(_guild_config_dao, _followed_repository_dao)
_repository_sync_service = RepositorySyncService(
    _repository_sync_state_dao, _repository_member_dao
)
_sync_history_service = SyncHistoryService(_sync_history_dao, _guild_config_dao)

# ---------------------------------------------------------------------------
# Engine / session factory / scheduler (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_scheduler: RoleSyncScheduler | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_engine(database_url)
    _session_factory = create_session_factory(_engine)
    return _session_factory


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def set_scheduler(scheduler: RoleSyncScheduler | None) -> None:
    global _scheduler  # noqa: PLW0603
    _scheduler = scheduler


def get_scheduler() -> RoleSyncScheduler | None:
    return _scheduler


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session with automatic commit/rollback."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    async with _session_factory() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Operator auth
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


def _check_token(credentials: HTTPAuthorizationCredentials | None, expected: str) -> None:
    if credentials is None:
        raise AuthenticationError("missing authorization header")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise AuthenticationError("invalid operator token")


async def require_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Require the operator bearer token when ``GITROLES_ADMIN_TOKEN`` is set."""
    expected = os.environ.get("GITROLES_ADMIN_TOKEN")
    if expected:
        _check_token(credentials, expected)


async def require_trigger_access(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Manual trigger: open outside production, token-gated in production."""
    expected = os.environ.get("GITROLES_ADMIN_TOKEN")
    if os.environ.get("GITROLES_ENV", "development") == "production":
        if not expected:
            raise PermissionDeniedError("manual sync trigger is disabled in production")
        _check_token(credentials, expected)
    elif expected:
        _check_token(credentials, expected)


# ---------------------------------------------------------------------------
# Service getters (for Depends())
# ---------------------------------------------------------------------------


def get_linked_account_service() -> LinkedAccountService:
    return _linked_account_service


def get_guild_config_service() -> GuildConfigService:
    return _guild_config_service


def get_sync_history_service() -> SyncHistoryService:
    return _sync_history_service


def build_role_sync_runner(
    session_factory: async_sessionmaker[AsyncSession],
    github_client: GitHubClient,
    discord_client: DiscordClient,
) -> RoleSyncRunner:
    """Wire the reconciler and runner over the shared service singletons."""
    reconciler = GuildReconciler(
        session_factory,
        discord_client,
        _linked_account_service,
        _sync_history_service,
    )
    return RoleSyncRunner(
        _guild_config_service,
        _repository_sync_service,
        reconciler,
        github_client,
    )
