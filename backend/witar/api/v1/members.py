# witar/api/v1/members.py
from __future__ import annotations

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import ensure_can_add_employee, get_current_company, require_company_roles
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.roles import STAFF_ROLES, CompanyRole, normalize_role
from witar.core.storage import remove_document
from witar.crud.membership import get_membership, team_user_ids
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.department import Department
from witar.models.document import Document
from witar.models.leave_request import LeaveRequest
from witar.models.notification import DeletedNotification, Notification
from witar.models.time_entry import TimeEntry
from witar.models.time_entry_edit_request import TimeEntryEditRequest
from witar.models.user import User
from witar.schemas.member import MemberDeleteOut, MemberOut, MemberUpdate

router = APIRouter(prefix="/members", tags=["members"])

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = {CompanyRole.ADMIN.value, CompanyRole.MANAGER.value, CompanyRole.EMPLOYEE.value}


def _member_out(m: CompanyMembership, user: User, department_name: str | None) -> MemberOut:
    return MemberOut(
        id=m.id,
        company_id=m.company_id,
        user_id=m.user_id,
        email=user.email,
        full_name=user.full_name,
        role=m.role,
        permissions=list(m.permissions or []),
        department_id=m.department_id,
        department_name=department_name,
        supervisor_id=m.supervisor_id,
        require_location=m.require_location,
        is_active=m.is_active,
        created_at=m.created_at,
    )


def _members_query(company_id: uuid.UUID):
    return (
        select(CompanyMembership, User, Department.name)
        .join(User, User.id == CompanyMembership.user_id)
        .outerjoin(Department, Department.id == CompanyMembership.department_id)
        .where(CompanyMembership.company_id == company_id)
    )


async def _visible_user_ids(db: AsyncSession, member: CompanyMembership) -> set[uuid.UUID] | None:
    """None = no restriction (OWNER/ADMIN)."""
    if member.role == CompanyRole.MANAGER.value:
        return await team_user_ids(db, member)
    return None


async def _get_member_row(db: AsyncSession, company_id: uuid.UUID, membership_id: uuid.UUID):
    row = (await db.execute(_members_query(company_id).where(CompanyMembership.id == membership_id))).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return row


# ---------------------------------------------------------
# Read
# ---------------------------------------------------------
@router.get("", response_model=List[MemberOut])
async def list_members(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.MEMBERS_READ)),
):
    """
    OWNER/ADMIN see everyone; a MANAGER sees their team.
    """
    stmt = _members_query(company.id).order_by(CompanyMembership.created_at.asc())
    visible = await _visible_user_ids(db, member)
    if visible is not None:
        stmt = stmt.where(CompanyMembership.user_id.in_(list(visible)))

    rows = (await db.execute(stmt)).all()
    return [_member_out(m, u, dname) for m, u, dname in rows]


@router.get("/{membership_id}", response_model=MemberOut)
async def get_member(
    membership_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.MEMBERS_READ)),
):
    m, u, dname = await _get_member_row(db, company.id, membership_id)
    visible = await _visible_user_ids(db, member)
    if visible is not None and m.user_id not in visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return _member_out(m, u, dname)


# ---------------------------------------------------------
# Update (OWNER/ADMIN)
# ---------------------------------------------------------
@router.patch("/{membership_id}", response_model=MemberOut)
async def update_member(
    membership_id: uuid.UUID,
    payload: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _actor: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    m, u, _ = await _get_member_row(db, company.id, membership_id)

    if m.role == CompanyRole.OWNER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="The owner membership cannot be modified")

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    if "role" in data:
        role = normalize_role(data["role"])
        if role not in ASSIGNABLE_ROLES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid role. Allowed: {', '.join(sorted(ASSIGNABLE_ROLES))}",
            )
        m.role = role

    if "department_id" in data:
        dept_id = data["department_id"]
        if dept_id is not None:
            dept = await db.get(Department, dept_id)
            if dept is None or dept.company_id != company.id:
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown department")
        m.department_id = dept_id

    if "supervisor_id" in data:
        sup_id = data["supervisor_id"]
        if sup_id is not None:
            if sup_id == m.user_id:
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="A member cannot supervise themselves")
            sup = await get_membership(db, company.id, sup_id)
            if sup is None or sup.role not in STAFF_ROLES:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="supervisor_id must be an active manager of this company",
                )
        m.supervisor_id = sup_id

    if "require_location" in data:
        m.require_location = data["require_location"]

    if "permissions" in data and data["permissions"] is not None:
        m.permissions = [p.strip() for p in data["permissions"] if p and p.strip()]

    if "is_active" in data and data["is_active"] is not None:
        if data["is_active"] and not m.is_active:
            await ensure_can_add_employee(db, company.id)
        m.is_active = data["is_active"]

    await db.commit()
    m, u, dname = await _get_member_row(db, company.id, membership_id)
    logger.info("Member %s updated in company %s", m.id, company.id)
    return _member_out(m, u, dname)


# ---------------------------------------------------------
# Delete employee (OWNER/ADMIN)
# ---------------------------------------------------------
@router.delete("/{membership_id}", response_model=MemberDeleteOut)
async def delete_member(
    membership_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    _actor: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN")),
):
    """
    Removes the member and everything they own in this company. The user
    account itself goes too when they belong to no other company.
    """
    m, user, _ = await _get_member_row(db, company.id, membership_id)

    if m.role == CompanyRole.OWNER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="The company owner cannot be deleted")

    user_id = m.user_id

    docs = (
        await db.execute(
            select(Document.storage_name).where(Document.company_id == company.id, Document.user_id == user_id)
        )
    ).scalars().all()

    await db.execute(
        delete(TimeEntryEditRequest).where(
            TimeEntryEditRequest.company_id == company.id, TimeEntryEditRequest.user_id == user_id
        )
    )
    await db.execute(delete(TimeEntry).where(TimeEntry.company_id == company.id, TimeEntry.user_id == user_id))
    await db.execute(delete(LeaveRequest).where(LeaveRequest.company_id == company.id, LeaveRequest.user_id == user_id))
    await db.execute(delete(Document).where(Document.company_id == company.id, Document.user_id == user_id))
    await db.execute(
        delete(Notification).where(Notification.company_id == company.id, Notification.recipient_id == user_id)
    )
    await db.execute(
        delete(DeletedNotification).where(
            DeletedNotification.company_id == company.id, DeletedNotification.recipient_id == user_id
        )
    )

    # references that would otherwise dangle
    await db.execute(
        update(CompanyMembership)
        .where(CompanyMembership.company_id == company.id, CompanyMembership.supervisor_id == user_id)
        .values(supervisor_id=None)
    )
    await db.execute(
        update(Department)
        .where(Department.company_id == company.id, Department.manager_id == user_id)
        .values(manager_id=None)
    )

    await db.delete(m)
    await db.flush()

    other = (
        await db.execute(select(func.count(CompanyMembership.id)).where(CompanyMembership.user_id == user_id))
    ).scalar() or 0
    has_other_companies = int(other) > 0

    if not has_other_companies:
        await db.delete(user)

    await db.commit()

    for storage_name in docs:
        remove_document(company.id, storage_name)

    logger.info(
        "Member %s (user %s) deleted from company %s; account kept=%s",
        membership_id,
        user_id,
        company.id,
        has_other_companies,
    )
    return MemberDeleteOut(employee_id=membership_id, user_id=user_id, has_other_companies=has_other_companies)
