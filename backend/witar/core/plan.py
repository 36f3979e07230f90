# witar/core/plan.py
"""
Per-employee plan: a flat price per active employee up to a hard limit,
and the trial / blocked lifecycle of a company.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from witar.core.config import settings
from witar.models.company import (
    COMPANY_STATUS_ACTIVE,
    COMPANY_STATUS_BLOCKED,
    COMPANY_STATUS_TRIAL,
)

PLAN_NAME = "Plan Witar"
PLAN_TYPE = "per_employee"
PLAN_FEATURES = (
    "Time clock with breaks",
    "Leave and permission requests",
    "Time entry correction workflow",
    "Document management",
    "Reports and CSV export",
    "Notifications",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def monthly_price(employee_count: int) -> Decimal:
    billable = max(0, min(employee_count, settings.PLAN_EMPLOYEE_LIMIT))
    return (Decimal(billable) * settings.PRICE_PER_EMPLOYEE).quantize(Decimal("0.01"))


def is_limit_exceeded(employee_count: int) -> bool:
    return employee_count > settings.PLAN_EMPLOYEE_LIMIT


def plan_info(employee_count: int) -> dict:
    exceeded = is_limit_exceeded(employee_count)
    return {
        "name": PLAN_NAME,
        "type": PLAN_TYPE,
        "price_per_employee": float(settings.PRICE_PER_EMPLOYEE),
        "currency": settings.BILLING_CURRENCY,
        "employee_limit": settings.PLAN_EMPLOYEE_LIMIT,
        "current_employees": employee_count,
        "monthly_price": float(monthly_price(employee_count)),
        "is_limit_exceeded": exceeded,
        "status": "limit_exceeded" if exceeded else "active",
        "features": list(PLAN_FEATURES),
    }


def format_invoice_number(period: str, sequence: int) -> str:
    # period "YYYY-MM" -> WIT-YYYYMM-NNN
    return f"WIT-{period.replace('-', '')}-{sequence:03d}"


def parse_invoice_sequence(invoice_number: Optional[str]) -> int:
    if not invoice_number:
        return 0
    tail = invoice_number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


@dataclass(frozen=True)
class CompanyStatus:
    company_status: str
    is_blocked: bool
    days_remaining: int
    days_since_creation: int
    has_active_subscription: bool


def compute_company_status(
    *,
    created_at: datetime,
    stored_status: Optional[str],
    blocked_at: Optional[datetime],
    has_active_subscription: bool,
    now: Optional[datetime] = None,
) -> CompanyStatus:
    now = now or _utcnow()
    days_since = max(0, (now - created_at).days)
    remaining = max(0, settings.TRIAL_DAYS - days_since)

    # manually activated companies stay active
    if stored_status == COMPANY_STATUS_ACTIVE and blocked_at is None:
        return CompanyStatus(COMPANY_STATUS_ACTIVE, False, remaining, days_since, has_active_subscription)

    if has_active_subscription:
        return CompanyStatus(COMPANY_STATUS_ACTIVE, False, remaining, days_since, True)

    if days_since < settings.TRIAL_DAYS:
        return CompanyStatus(COMPANY_STATUS_TRIAL, False, remaining, days_since, False)

    return CompanyStatus(COMPANY_STATUS_BLOCKED, True, 0, days_since, False)
