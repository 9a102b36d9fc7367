"""repository_members table — cached contributor/stargazer logins."""

import uuid

from sqlalchemy import Enum, ForeignKey, Index, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gitroles.core.database import Base, TimestampMixin

membership_kind_enum = Enum(
    "contributor",
    "stargazer",
    name="membership_kind",
)


class RepositoryMember(TimestampMixin, Base):
    __tablename__ = "repository_members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    repository_full_name: Mapped[str] = mapped_column(
        Text,
        ForeignKey("repository_sync_states.repository_full_name", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(membership_kind_enum, nullable=False)
    login: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "repository_full_name", "kind", "login", name="uq_repo_members_repo_kind_login"
        ),
        Index("idx_repo_members_login", "login"),
    )
