# witar/api/v1/companies.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.v1.auth import get_current_user
from witar.api.deps.company import (
    get_current_company,
    get_current_membership,
    require_company_roles,
)
from witar.core.mailer import send_welcome_email
from witar.core.notifications import TYPE_COMPANY, notify_user
from witar.crud.company import get_or_create_settings, refresh_company_status, unique_slug
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.company_settings import CompanySettings
from witar.models.user import User
from witar.schemas.company import (
    CompanyCreate,
    CompanyOut,
    CompanySettingsIn,
    CompanySettingsOut,
    CompanyStatusOut,
    CompanyUpdate,
    MembershipOut,
)

router = APIRouter(prefix="/companies", tags=["companies"])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Company registration
# ---------------------------------------------------------
@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
async def create_company(
    payload: CompanyCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if payload.accepted_terms is not True:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="accepted_terms must be true to register a company",
        )

    company = Company(name=payload.name, slug=await unique_slug(db, payload.name))
    db.add(company)
    await db.flush()

    db.add(
        CompanyMembership(
            company_id=company.id,
            user_id=user.id,
            role="OWNER",
            permissions=[],
            is_active=True,
            accepted_terms=True,
            notifications_opt_in=payload.notifications_opt_in,
        )
    )
    db.add(CompanySettings(company_id=company.id, timezone=payload.timezone or "UTC"))
    await db.flush()

    await notify_user(
        db,
        company_id=company.id,
        recipient_id=user.id,
        sender_id=None,
        ntype=TYPE_COMPANY,
        title="Welcome to Witar",
        message=f"{company.name} has been created. Your trial period has started.",
        data={"company_id": str(company.id)},
    )

    await db.commit()
    await db.refresh(company)
    logger.info("Company %s registered by user %s", company.id, user.id)

    await send_welcome_email(to=user.email, company_name=company.name, full_name=user.full_name)
    return company


# ---------------------------------------------------------
# Company list (company selection after login)
# ---------------------------------------------------------
@router.get("", response_model=List[CompanyOut])
async def list_my_companies(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stmt = (
        select(Company)
        .join(CompanyMembership, CompanyMembership.company_id == Company.id)
        .where(CompanyMembership.user_id == user.id)
        .where(CompanyMembership.is_active.is_(True))
        .where(Company.is_active.is_(True))
        .order_by(Company.created_at.desc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().unique().all())


# ---------------------------------------------------------
# Company scoped endpoints
# ---------------------------------------------------------
@router.get("/current", response_model=CompanyOut)
async def get_current_company_route(
    company: Company = Depends(get_current_company),
):
    return company


@router.patch("/current", response_model=CompanyOut)
async def update_current_company(
    payload: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _membership: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if "name" in data:
        name = " ".join((data["name"] or "").split())
        if len(name) < 2:
            raise HTTPException(status_code=422, detail="Company name must have at least 2 characters")
        data["name"] = name

    for field, value in data.items():
        setattr(company, field, str(value) if field == "email" and value is not None else value)

    await db.commit()
    await db.refresh(company)
    return company


@router.get("/membership", response_model=MembershipOut)
async def get_my_membership_in_current_company(
    membership: CompanyMembership = Depends(get_current_membership),
):
    return membership


@router.get("/current/settings", response_model=CompanySettingsOut)
async def get_company_settings(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    cs = await get_or_create_settings(db, company.id)
    await db.commit()
    return cs


@router.put("/current/settings", response_model=CompanySettingsOut)
async def update_company_settings(
    payload: CompanySettingsIn,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _membership: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    cs = await get_or_create_settings(db, company.id)
    for field, value in payload.model_dump().items():
        setattr(cs, field, value)

    await db.commit()
    await db.refresh(cs)
    logger.info("Settings updated for company %s", company.id)
    return cs


@router.get("/current/status", response_model=CompanyStatusOut)
async def get_company_status(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    st = await refresh_company_status(db, company)
    await db.commit()
    return CompanyStatusOut(
        company_status=st.company_status,
        is_blocked=st.is_blocked,
        days_remaining=st.days_remaining,
        days_since_creation=st.days_since_creation,
        has_active_subscription=st.has_active_subscription,
    )
