"""Role sync engine — GitHub membership → Discord roles."""

from gitroles.engines.role_sync.decision import decide
from gitroles.engines.role_sync.discord_client import DiscordClient
from gitroles.engines.role_sync.github_client import GitHubClient, RateLimitError
from gitroles.engines.role_sync.membership import MembershipLoader
from gitroles.engines.role_sync.models import (
    GuildSyncResult,
    GuildSyncTarget,
    MembershipFetch,
    RepositoryRef,
)
from gitroles.engines.role_sync.reconciler import GuildPreconditionError, GuildReconciler
from gitroles.engines.role_sync.runner import PassResult, RoleSyncRunner

__all__ = [
    "DiscordClient",
    "GitHubClient",
    "GuildPreconditionError",
    "GuildReconciler",
    "GuildSyncResult",
    "GuildSyncTarget",
    "MembershipFetch",
    "MembershipLoader",
    "PassResult",
    "RateLimitError",
    "RepositoryRef",
    "RoleSyncRunner",
    "decide",
]
