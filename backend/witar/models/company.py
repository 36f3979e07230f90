# backend/witar/models/company.py

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow

COMPANY_STATUS_TRIAL = "trial"
COMPANY_STATUS_ACTIVE = "active"
COMPANY_STATUS_BLOCKED = "blocked"


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), nullable=False, unique=True, index=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # trial | active | blocked (recomputed by the status job)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=COMPANY_STATUS_TRIAL)
    blocked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    blocked_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
