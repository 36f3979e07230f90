import uuid
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.edit_requests import STATUS_PENDING, can_decide
from witar.core.roles import CompanyRole
from witar.crud.membership import get_membership, team_employee_ids
from witar.models.company_membership import CompanyMembership


async def approval_scope(db: AsyncSession, member: CompanyMembership) -> Optional[set[uuid.UUID]]:
    """
    Requesters whose requests `member` may list. None = whole company.
    """
    if member.role == CompanyRole.MANAGER.value:
        return await team_employee_ids(db, member)
    return None


async def ensure_can_decide(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    requester_id: uuid.UUID,
    request_status: str,
    approver: CompanyMembership,
) -> None:
    """
    Shared rules for edit and leave requests: pending only, never your own,
    a MANAGER only for EMPLOYEE members of their team.
    """
    if request_status != STATUS_PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "REQUEST_ALREADY_DECIDED", "message": f"Request is already {request_status}."},
        )

    if requester_id == approver.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot decide your own request")

    requester = await get_membership(db, company_id, requester_id, active_only=False)
    requester_role = requester.role if requester else CompanyRole.EMPLOYEE.value

    in_team = False
    if approver.role == CompanyRole.MANAGER.value:
        in_team = requester_id in await team_employee_ids(db, approver)

    if not can_decide(
        approver_role=approver.role,
        requester_role=requester_role,
        same_user=False,
        requester_in_team=in_team,
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to decide this request",
        )
