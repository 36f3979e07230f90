# backend/witar/models/billing.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from witar.db.base import Base
from witar.db.types import UTCDateTime, utcnow


class Subscription(Base):
    """
    One per company. Mirrors the per-employee plan state at the last sync.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("company_id", name="uq_subscriptions_company"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )

    plan_type: Mapped[str] = mapped_column(String(30), nullable=False, default="per_employee")
    # active | limit_exceeded | cancelled
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")

    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_per_employee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="EUR")

    current_period_start: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        Index("ix_invoices_company_created_at", "company_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )
    subscription_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
    )

    # WIT-YYYYMM-NNN, sequential per company
    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False)
    # billed month, YYYY-MM
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    employee_count: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="EUR")

    # pending | paid | cancelled | overdue
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
