# witar/api/v1/departments.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company, require_company_roles
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.roles import STAFF_ROLES
from witar.crud.membership import get_membership
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.department import Department
from witar.models.invitation import INVITATION_PENDING, Invitation
from witar.schemas.department import DepartmentIn, DepartmentOut, DepartmentUpdate

router = APIRouter(prefix="/departments", tags=["departments"])

logger = logging.getLogger(__name__)


async def _employee_counts(db: AsyncSession, company_id: uuid.UUID) -> dict[uuid.UUID, int]:
    stmt = (
        select(CompanyMembership.department_id, func.count(CompanyMembership.id))
        .where(CompanyMembership.company_id == company_id)
        .where(CompanyMembership.is_active.is_(True))
        .where(CompanyMembership.department_id.is_not(None))
        .group_by(CompanyMembership.department_id)
    )
    return {dept_id: int(n) for dept_id, n in (await db.execute(stmt)).all()}


def _to_out(dept: Department, employee_count: int = 0) -> DepartmentOut:
    out = DepartmentOut.model_validate(dept)
    out.employee_count = employee_count
    return out


async def _get_department(db: AsyncSession, company_id: uuid.UUID, department_id: uuid.UUID) -> Department:
    dept = await db.get(Department, department_id)
    if dept is None or dept.company_id != company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    return dept


async def _ensure_unique_name(
    db: AsyncSession,
    company_id: uuid.UUID,
    name: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    stmt = select(Department.id).where(
        Department.company_id == company_id,
        func.lower(Department.name) == name.lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A department with that name already exists")


async def _validate_manager(db: AsyncSession, company_id: uuid.UUID, manager_id: Optional[uuid.UUID]) -> None:
    if manager_id is None:
        return
    m = await get_membership(db, company_id, manager_id)
    if m is None or m.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="manager_id must be an active manager of this company",
        )


@router.get("", response_model=List[DepartmentOut])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.DEPARTMENTS_READ)),
):
    rows = (
        await db.execute(
            select(Department).where(Department.company_id == company.id).order_by(Department.name.asc())
        )
    ).scalars().all()
    counts = await _employee_counts(db, company.id)
    return [_to_out(d, counts.get(d.id, 0)) for d in rows]


@router.get("/{department_id}", response_model=DepartmentOut)
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_permissions(PERM.DEPARTMENTS_READ)),
):
    dept = await _get_department(db, company.id, department_id)
    counts = await _employee_counts(db, company.id)
    return _to_out(dept, counts.get(dept.id, 0))


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
async def create_department(
    payload: DepartmentIn,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    await _ensure_unique_name(db, company.id, payload.name)
    await _validate_manager(db, company.id, payload.manager_id)

    dept = Department(
        company_id=company.id,
        name=payload.name,
        description=payload.description,
        manager_id=payload.manager_id,
        status="active",
    )
    db.add(dept)
    await db.commit()
    await db.refresh(dept)

    logger.info("Department %s created in company %s", dept.id, company.id)
    return _to_out(dept)


@router.patch("/{department_id}", response_model=DepartmentOut)
async def update_department(
    department_id: uuid.UUID,
    payload: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    dept = await _get_department(db, company.id, department_id)

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if data.get("name") is not None:
        await _ensure_unique_name(db, company.id, data["name"], exclude_id=dept.id)
        dept.name = data["name"]
    if "description" in data:
        dept.description = data["description"]
    if "manager_id" in data:
        await _validate_manager(db, company.id, data["manager_id"])
        dept.manager_id = data["manager_id"]

    await db.commit()
    await db.refresh(dept)

    counts = await _employee_counts(db, company.id)
    return _to_out(dept, counts.get(dept.id, 0))


@router.post("/{department_id}/toggle-status", response_model=DepartmentOut)
async def toggle_department_status(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    dept = await _get_department(db, company.id, department_id)
    dept.status = "inactive" if dept.status == "active" else "active"
    await db.commit()
    await db.refresh(dept)

    counts = await _employee_counts(db, company.id)
    return _to_out(dept, counts.get(dept.id, 0))


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _member: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    dept = await _get_department(db, company.id, department_id)

    await db.execute(
        update(CompanyMembership)
        .where(CompanyMembership.company_id == company.id, CompanyMembership.department_id == dept.id)
        .values(department_id=None)
    )
    await db.execute(
        update(Invitation)
        .where(
            Invitation.company_id == company.id,
            Invitation.department_id == dept.id,
            Invitation.status == INVITATION_PENDING,
        )
        .values(department_id=None)
    )
    await db.delete(dept)
    await db.commit()

    logger.info("Department %s deleted from company %s", department_id, company.id)
    return None
