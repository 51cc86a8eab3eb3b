"""repositories table."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    desc,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillsync.core.database import Base, TimestampMixin


class Repository(TimestampMixin, Base):
    __tablename__ = "repositories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    github_repo_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    owner_login: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    default_branch: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'main'"))
    visibility: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'public'"))
    is_fork: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    stars: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    primary_language: Mapped[Optional[str]] = mapped_column(Text)

    # language -> byte count, as reported by the platform
    languages: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default=text("'{}'"))
    frameworks: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'"))
    total_commits: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))

    github_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    pushed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_repositories_company", "company_id"),
        Index("idx_repositories_cursor", desc("created_at"), desc("id")),
    )
