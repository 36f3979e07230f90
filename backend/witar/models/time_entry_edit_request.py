import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow


class TimeEntryEditRequest(Base):
    __tablename__ = "time_entry_edit_requests"
    __table_args__ = (
        Index("ix_time_edit_requests_company_status", "company_id", "status"),
        Index("ix_time_edit_requests_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    # requester
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL for add_entry, and after an approved delete_entry
    time_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("time_entries.id", ondelete="SET NULL"),
        nullable=True,
    )

    # edit_time | edit_type | delete_entry | add_entry
    request_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Snapshot of the entry when the request was filed
    current_entry_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    current_entry_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    current_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    proposed_entry_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    proposed_entry_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    proposed_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # pending | approved | rejected
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
