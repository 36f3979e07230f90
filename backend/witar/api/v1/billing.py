# witar/api/v1/billing.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company, require_company_roles
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.plan import PLAN_TYPE, format_invoice_number, monthly_price, parse_invoice_sequence, plan_info
from witar.crud.company import refresh_company_status
from witar.crud.membership import count_active_members
from witar.db.session import get_db
from witar.models.billing import Invoice, Subscription
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.schemas.billing import (
    BillingOverview,
    BillingStats,
    InvoiceCreate,
    InvoiceOut,
    InvoiceStatusUpdate,
    PlanOut,
    SubscriptionOut,
)

router = APIRouter(prefix="/billing", tags=["billing"])

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _month_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = (start + timedelta(days=32)).replace(day=1)
    return start, end


async def _get_subscription(db: AsyncSession, company_id: uuid.UUID) -> Optional[Subscription]:
    return (
        await db.execute(select(Subscription).where(Subscription.company_id == company_id))
    ).scalar_one_or_none()


async def _next_invoice_sequence(db: AsyncSession, company_id: uuid.UUID) -> int:
    numbers = (
        await db.execute(select(Invoice.invoice_number).where(Invoice.company_id == company_id))
    ).scalars().all()
    return max((parse_invoice_sequence(n) for n in numbers), default=0) + 1


@router.get("", response_model=BillingOverview)
async def billing_overview(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.BILLING_READ)),
):
    count = await count_active_members(db, company.id)
    sub = await _get_subscription(db, company.id)
    invoices = (
        await db.execute(
            select(Invoice)
            .where(Invoice.company_id == company.id)
            .order_by(Invoice.created_at.desc())
            .limit(10)
        )
    ).scalars().all()

    return BillingOverview(
        employee_count=count,
        plan=PlanOut(**plan_info(count)),
        subscription=SubscriptionOut.model_validate(sub) if sub else None,
        invoices=[InvoiceOut.model_validate(i) for i in invoices],
    )


@router.post("/subscription/sync", response_model=SubscriptionOut)
async def sync_subscription(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _owner: CompanyMembership = Depends(require_company_roles("OWNER")),
):
    """
    Creates or refreshes the company's subscription from the current active
    employee count.
    """
    now = _utcnow()
    count = await count_active_members(db, company.id)
    info = plan_info(count)
    period_start, period_end = _month_bounds(now)

    sub = await _get_subscription(db, company.id)
    if sub is None:
        sub = Subscription(company_id=company.id, plan_type=PLAN_TYPE)
        db.add(sub)

    sub.status = info["status"]
    sub.employee_count = count
    sub.price_per_employee = settings.PRICE_PER_EMPLOYEE
    sub.monthly_price = monthly_price(count)
    sub.currency = settings.BILLING_CURRENCY
    sub.current_period_start = period_start
    sub.current_period_end = period_end
    await db.flush()

    await refresh_company_status(db, company, now)
    await db.commit()
    await db.refresh(sub)

    logger.info("Subscription synced for company %s: %s employees, %s", company.id, count, sub.status)
    return sub


@router.post("/invoices", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _owner: CompanyMembership = Depends(require_company_roles("OWNER")),
):
    count = await count_active_members(db, company.id)
    sub = await _get_subscription(db, company.id)
    seq = await _next_invoice_sequence(db, company.id)

    inv = Invoice(
        company_id=company.id,
        subscription_id=sub.id if sub else None,
        invoice_number=format_invoice_number(payload.period, seq),
        period=payload.period,
        employee_count=count,
        amount=monthly_price(count),
        currency=settings.BILLING_CURRENCY,
        status=payload.status,
        paid_at=_utcnow() if payload.status == "paid" else None,
    )
    db.add(inv)
    await db.commit()
    await db.refresh(inv)

    logger.info("Invoice %s created for company %s", inv.invoice_number, company.id)
    return inv


@router.get("/invoices", response_model=List[InvoiceOut])
async def list_invoices(
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.BILLING_READ)),
):
    rows = (
        await db.execute(
            select(Invoice)
            .where(Invoice.company_id == company.id)
            .order_by(Invoice.created_at.desc())
            .limit(limit)
        )
    ).scalars().all()
    return list(rows)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceOut)
async def update_invoice_status(
    invoice_id: uuid.UUID,
    payload: InvoiceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _owner: CompanyMembership = Depends(require_company_roles("OWNER")),
):
    inv = await db.get(Invoice, invoice_id)
    if inv is None or inv.company_id != company.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")

    inv.status = payload.status
    if payload.status == "paid":
        inv.paid_at = inv.paid_at or _utcnow()
    else:
        inv.paid_at = None

    await db.commit()
    await db.refresh(inv)
    return inv


@router.get("/stats", response_model=BillingStats)
async def billing_stats(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.BILLING_READ)),
):
    invoices = (await db.execute(select(Invoice).where(Invoice.company_id == company.id))).scalars().all()

    billable = [i for i in invoices if i.status != "cancelled"]
    total = sum((Decimal(i.amount) for i in billable), Decimal("0"))
    paid = sum((Decimal(i.amount) for i in billable if i.status == "paid"), Decimal("0"))
    pending = sum((Decimal(i.amount) for i in billable if i.status in ("pending", "overdue")), Decimal("0"))

    year_ago = _utcnow() - timedelta(days=365)
    last_year = sum((Decimal(i.amount) for i in billable if i.created_at >= year_ago), Decimal("0"))

    return BillingStats(
        total_invoices=len(invoices),
        total_amount=float(total),
        paid_amount=float(paid),
        pending_amount=float(pending),
        average_monthly_amount=round(float(last_year / 12), 2),
    )
