"""guild_configs table."""

import uuid
from typing import Optional

from sqlalchemy import Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gitroles.core.database import Base, TimestampMixin


class GuildConfig(TimestampMixin, Base):
    __tablename__ = "guild_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    guild_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    contributor_role_id: Mapped[Optional[str]] = mapped_column(Text)
    stargazer_role_id: Mapped[Optional[str]] = mapped_column(Text)
