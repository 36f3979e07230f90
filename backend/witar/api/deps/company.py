import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.v1.auth import get_current_user
from witar.core.roles import ALL_ROLES
from witar.core.config import settings
from witar.crud.company import resolve_company_status
from witar.crud.membership import can_add_employee, count_active_members
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.user import User


async def get_current_company(
    x_company_id: Optional[str] = Header(default=None, alias="X-Company-Id"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Company:
    """
    Resolve company from X-Company-Id header and ensure current user has an active membership.
    """
    if not x_company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Company-Id header is required",
        )

    try:
        company_uuid = uuid.UUID(x_company_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="X-Company-Id must be a valid UUID",
        )

    company = await db.get(Company, company_uuid)
    if not company or not company.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )

    stmt = select(CompanyMembership.id).where(
        CompanyMembership.company_id == company.id,
        CompanyMembership.user_id == user.id,
        CompanyMembership.is_active.is_(True),
    )
    if (await db.execute(stmt)).first() is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this company",
        )

    return company


async def get_current_membership(
    company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CompanyMembership:
    """
    Fetch the active membership for (user, company). Safe after get_current_company.
    """
    stmt = select(CompanyMembership).where(
        CompanyMembership.company_id == company.id,
        CompanyMembership.user_id == user.id,
        CompanyMembership.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one()


def require_company_roles(*allowed_roles: str):
    """
    Enforce membership.role is in allowed_roles. (OWNER/ADMIN/MANAGER/EMPLOYEE)
    """
    allowed = {r.upper() for r in allowed_roles}
    unknown = allowed - ALL_ROLES
    if unknown:
        raise ValueError(
            f"Unknown company role(s): {sorted(unknown)}. Allowed: {sorted(ALL_ROLES)}"
        )

    async def _checker(
        membership: CompanyMembership = Depends(get_current_membership),
    ) -> CompanyMembership:
        role = (membership.role or "").upper()
        if role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role: {role}. Allowed: {', '.join(sorted(allowed))}",
            )
        return membership

    return _checker


async def require_active_company(
    company: Company = Depends(get_current_company),
    db: AsyncSession = Depends(get_db),
) -> Company:
    """
    Guard for writes that a blocked company (trial over, no subscription)
    may not perform. Billing stays reachable so the owner can pay.
    """
    st = await resolve_company_status(db, company)
    if st.is_blocked:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "COMPANY_BLOCKED",
                "message": "The trial period has ended. Activate a subscription to keep using Witar.",
                "days_since_creation": st.days_since_creation,
            },
        )
    return company


async def ensure_can_add_employee(db: AsyncSession, company_id: uuid.UUID) -> None:
    """
    Per-employee plan cap. Invitations, acceptances and reactivations go through here.
    """
    if await can_add_employee(db, company_id):
        return
    active = await count_active_members(db, company_id)
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "error": "PLAN_LIMIT_EXCEEDED",
            "message": "Employee limit reached for the current plan.",
            "limit": settings.PLAN_EMPLOYEE_LIMIT,
            "active_employees": active,
        },
    )
