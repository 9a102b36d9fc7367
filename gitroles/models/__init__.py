"""SQLAlchemy ORM models — one file per table."""

from gitroles.models.discord_account import DiscordAccount
from gitroles.models.followed_repository import FollowedRepository
from gitroles.models.github_account import GitHubAccount
from gitroles.models.guild_config import GuildConfig
from gitroles.models.guild_sync_history import GuildSyncHistory
from gitroles.models.repository_member import RepositoryMember
from gitroles.models.repository_sync_state import RepositorySyncState
from gitroles.models.user import User

__all__ = [
    "User",
    "GitHubAccount",
    "DiscordAccount",
    "GuildConfig",
    "FollowedRepository",
    "GuildSyncHistory",
    "RepositorySyncState",
    "RepositoryMember",
]
