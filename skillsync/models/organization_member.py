"""organization_members table — external account snapshots + resolution state."""

import uuid
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Double,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from skillsync.core.database import Base, TimestampMixin


class OrganizationMember(TimestampMixin, Base):
    __tablename__ = "organization_members"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    github_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    github_username: Mapped[str] = mapped_column(Text, nullable=False)
    github_email: Mapped[Optional[str]] = mapped_column(Text)
    github_name: Mapped[Optional[str]] = mapped_column(Text)
    org_role: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'member'"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))

    # resolution state
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        unique=True,
    )
    match_confidence: Mapped[float] = mapped_column(
        Double, nullable=False, server_default=text("0")
    )
    match_method: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "github_user_id", name="uq_organization_members_company_github_user"
        ),
        Index(
            "idx_organization_members_unresolved",
            "company_id",
            postgresql_where=text("employee_id IS NULL"),
        ),
    )
