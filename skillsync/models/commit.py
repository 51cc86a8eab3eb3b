"""commits table."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillsync.core.database import Base, TimestampMixin


class Commit(TimestampMixin, Base):
    __tablename__ = "commits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    repository_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
    )
    sha: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    author_name: Mapped[Optional[str]] = mapped_column(Text)
    author_email: Mapped[Optional[str]] = mapped_column(Text)
    author_login: Mapped[Optional[str]] = mapped_column(Text)
    author_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    committer_name: Mapped[Optional[str]] = mapped_column(Text)
    committer_email: Mapped[Optional[str]] = mapped_column(Text)
    committed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # diff stats; zero until fetched
    additions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    deletions: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    files_changed: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    parent_shas: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'"))
    html_url: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("repository_id", "sha", name="uq_commits_repository_sha"),
        Index("idx_commits_author_login", "repository_id", "author_login"),
    )
