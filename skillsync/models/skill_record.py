"""skill_records table."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Double,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillsync.core.database import Base, TimestampMixin

skill_level_enum = Enum(
    "beginner",
    "intermediate",
    "advanced",
    "expert",
    name="skill_level",
    create_type=False,
)


class SkillRecord(TimestampMixin, Base):
    __tablename__ = "skill_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    skill_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("skills.id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[str] = mapped_column(skill_level_enum, nullable=False)
    confidence: Mapped[float] = mapped_column(Double, nullable=False, server_default=text("0"))

    # contribution metrics
    lines_of_code: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    commit_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    projects_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # provenance
    is_auto_detected: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )
    source: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'manual'"))

    __table_args__ = (
        UniqueConstraint("employee_id", "skill_id", name="uq_skill_records_employee_skill"),
        Index("idx_skill_records_employee", "employee_id"),
    )
