"""repository_sync_states table — shared ETag/cache control per repository."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gitroles.core.database import Base, TimestampMixin


class RepositorySyncState(TimestampMixin, Base):
    __tablename__ = "repository_sync_states"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    repository_full_name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    last_contributor_sync: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_stargazer_sync: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    contributor_etag: Mapped[Optional[str]] = mapped_column(Text)
    stargazer_etag: Mapped[Optional[str]] = mapped_column(Text)
    contributor_error: Mapped[Optional[str]] = mapped_column(Text)
    stargazer_error: Mapped[Optional[str]] = mapped_column(Text)

    @property
    def last_sync_error(self) -> str | None:
        """Outstanding fetch errors of both kinds, or None when both are clear."""
        errors = [e for e in (self.contributor_error, self.stargazer_error) if e]
        return "; ".join(errors) or None
