import uuid
from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow


class CompanySettings(Base):
    __tablename__ = "company_settings"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        primary_key=True,
    )

    working_hours_per_day: Mapped[float] = mapped_column(Float, nullable=False, default=8.0)
    working_days_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    require_location: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_approve_requests: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_vacation_days: Mapped[int] = mapped_column(Integer, nullable=False, default=20)

    # Notification topics
    notify_time_clock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_requests: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_employees: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_documents: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_invitations: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_system_warnings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
