# witar/crud/company.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.plan import CompanyStatus, compute_company_status
from witar.core.time_clock import zone_or_utc
from witar.core.validation import slugify
from witar.models.billing import Subscription
from witar.models.company import COMPANY_STATUS_BLOCKED, Company
from witar.models.company_settings import CompanySettings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_or_create_settings(db: AsyncSession, company_id: uuid.UUID) -> CompanySettings:
    """
    Settings rows are created lazily; callers commit.
    """
    cs = await db.get(CompanySettings, company_id)
    if cs is None:
        cs = CompanySettings(company_id=company_id)
        db.add(cs)
        await db.flush()
    return cs


async def unique_slug(db: AsyncSession, name: str) -> str:
    base = slugify(name)[:200]
    slug = base
    n = 1
    while (await db.execute(select(Company.id).where(Company.slug == slug))).first() is not None:
        n += 1
        slug = f"{base}-{n}"
    return slug


async def has_active_subscription(db: AsyncSession, company_id: uuid.UUID) -> bool:
    stmt = select(Subscription.id).where(
        Subscription.company_id == company_id,
        Subscription.status.in_(("active", "limit_exceeded")),
    )
    return (await db.execute(stmt)).first() is not None


async def resolve_company_status(
    db: AsyncSession,
    company: Company,
    now: Optional[datetime] = None,
) -> CompanyStatus:
    return compute_company_status(
        created_at=company.created_at,
        stored_status=company.status,
        blocked_at=company.blocked_at,
        has_active_subscription=await has_active_subscription(db, company.id),
        now=now,
    )


async def refresh_company_status(
    db: AsyncSession,
    company: Company,
    now: Optional[datetime] = None,
) -> CompanyStatus:
    """
    Recompute and persist company.status (caller commits).
    """
    now = now or _utcnow()
    st = await resolve_company_status(db, company, now)

    if st.company_status != company.status:
        logger.info("Company %s status %s -> %s", company.id, company.status, st.company_status)
        company.status = st.company_status

    if st.is_blocked:
        if company.blocked_at is None:
            company.blocked_at = now
            company.blocked_reason = "Trial period expired without an active subscription"
    elif company.blocked_at is not None and company.status != COMPANY_STATUS_BLOCKED:
        company.blocked_at = None
        company.blocked_reason = None

    return st


async def refresh_all_company_statuses(db: AsyncSession, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or _utcnow()
    counts: dict[str, int] = {}
    companies = (await db.execute(select(Company).where(Company.is_active.is_(True)))).scalars().all()
    for company in companies:
        st = await refresh_company_status(db, company, now)
        counts[st.company_status] = counts.get(st.company_status, 0) + 1
    await db.commit()
    return counts


async def company_timezone(db: AsyncSession, company_id: uuid.UUID) -> ZoneInfo:
    cs = await get_or_create_settings(db, company_id)
    return zone_or_utc(cs.timezone)
