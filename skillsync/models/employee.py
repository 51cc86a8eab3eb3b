"""employees table."""

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


class Employee(TimestampMixin, Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(Text, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    last_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))

    # external identity link
    github_username: Mapped[Optional[str]] = mapped_column(Text)
    github_user_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    discovery_confidence: Mapped[Optional[float]] = mapped_column(Double)
    discovery_method: Mapped[Optional[str]] = mapped_column(Text)
    auto_discovered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )

    __table_args__ = (
        UniqueConstraint("company_id", "email", name="uq_employees_company_email"),
        Index("idx_employees_company", "company_id"),
        Index("idx_employees_github_username", "company_id", "github_username"),
    )
