# backend/witar/models/company_membership.py

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, String, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow


class CompanyMembership(Base):
    __tablename__ = "company_memberships"
    __table_args__ = (
        UniqueConstraint("company_id", "user_id", name="uq_company_memberships_company_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # OWNER | ADMIN | MANAGER | EMPLOYEE
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="EMPLOYEE")

    # Extra grants on top of the role's base permissions
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    # user id of the direct supervisor (a manager of the same company)
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # None = follow company_settings.require_location
    require_location: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None)

    accepted_terms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notifications_opt_in: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
