"""guild_sync_history table — one row per guild reconciliation attempt."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text, desc, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gitroles.core.database import Base, TimestampMixin


class GuildSyncHistory(TimestampMixin, Base):
    __tablename__ = "guild_sync_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    guild_config_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("guild_configs.id", ondelete="CASCADE"),
        nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    total_processed: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    roles_added: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    roles_removed: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))

    __table_args__ = (
        Index(
            "idx_guild_sync_history_cursor",
            "guild_config_id",
            desc("created_at"),
            desc("id"),
        ),
    )
