"""followed_repositories table.

``owner`` and ``name`` are stored lowercase, which makes the unique
constraint case-insensitive.
"""

import uuid

from sqlalchemy import ForeignKey, Index, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gitroles.core.database import Base, TimestampMixin


class FollowedRepository(TimestampMixin, Base):
    __tablename__ = "followed_repositories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    guild_config_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("guild_configs.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("guild_config_id", "owner", "name", name="uq_followed_repos_guild_repo"),
        Index("idx_followed_repos_guild", "guild_config_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
