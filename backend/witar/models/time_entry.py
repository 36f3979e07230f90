import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Float, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow


class TimeEntry(Base):
    """
    One punch event. Sessions are never stored; they are rebuilt from the
    ordered punches of a user (see witar.core.time_clock).
    """

    __tablename__ = "time_entries"
    __table_args__ = (
        Index("ix_time_entries_company_user_time", "company_id", "user_id", "entry_time"),
        Index("ix_time_entries_company_time", "company_id", "entry_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # clock_in | clock_out | break_start | break_end
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entry_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    location_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
