# witar/crud/membership.py
from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.config import settings
from witar.models.company_membership import CompanyMembership
from witar.models.department import Department


async def count_active_members(db: AsyncSession, company_id: uuid.UUID) -> int:
    """
    Active memberships of a company, all roles. This is the billable
    employee count of the per-employee plan.
    """
    stmt = (
        select(func.count(CompanyMembership.id))
        .where(CompanyMembership.company_id == company_id)
        .where(CompanyMembership.is_active.is_(True))
    )
    res = await db.execute(stmt)
    return int(res.scalar() or 0)


async def get_membership(
    db: AsyncSession,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    active_only: bool = True,
) -> Optional[CompanyMembership]:
    stmt = select(CompanyMembership).where(
        CompanyMembership.company_id == company_id,
        CompanyMembership.user_id == user_id,
    )
    if active_only:
        stmt = stmt.where(CompanyMembership.is_active.is_(True))
    return (await db.execute(stmt)).scalar_one_or_none()


async def active_user_ids_with_roles(
    db: AsyncSession,
    company_id: uuid.UUID,
    roles: Iterable[str],
) -> list[uuid.UUID]:
    roles = [r.upper() for r in roles]
    if not roles:
        return []
    stmt = (
        select(CompanyMembership.user_id)
        .where(CompanyMembership.company_id == company_id)
        .where(CompanyMembership.is_active.is_(True))
        .where(CompanyMembership.role.in_(roles))
    )
    return list((await db.execute(stmt)).scalars().all())


async def team_user_ids(db: AsyncSession, manager: CompanyMembership) -> set[uuid.UUID]:
    """
    A manager's team: members they supervise directly, members of the
    manager's own department and members of departments they manage.
    The manager is not part of their own team.
    """
    managed_departments = select(Department.id).where(
        Department.company_id == manager.company_id,
        Department.manager_id == manager.user_id,
    )

    conditions = [
        CompanyMembership.supervisor_id == manager.user_id,
        CompanyMembership.department_id.in_(managed_departments),
    ]
    if manager.department_id is not None:
        conditions.append(CompanyMembership.department_id == manager.department_id)

    stmt = (
        select(CompanyMembership.user_id)
        .where(CompanyMembership.company_id == manager.company_id)
        .where(CompanyMembership.is_active.is_(True))
        .where(CompanyMembership.user_id != manager.user_id)
        .where(or_(*conditions))
    )
    return set((await db.execute(stmt)).scalars().all())


async def can_add_employee(db: AsyncSession, company_id: uuid.UUID) -> bool:
    return await count_active_members(db, company_id) < settings.PLAN_EMPLOYEE_LIMIT


async def team_employee_ids(db: AsyncSession, manager: CompanyMembership) -> set[uuid.UUID]:
    """Team members whose requests the manager may see and decide."""
    team = await team_user_ids(db, manager)
    if not team:
        return set()
    stmt = select(CompanyMembership.user_id).where(
        CompanyMembership.company_id == manager.company_id,
        CompanyMembership.user_id.in_(list(team)),
        CompanyMembership.role == "EMPLOYEE",
    )
    return set((await db.execute(stmt)).scalars().all())
