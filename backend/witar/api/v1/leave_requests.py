# witar/api/v1/leave_requests.py
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.approvals import approval_scope, ensure_can_decide
from witar.api.deps.company import get_current_company, get_current_membership, require_active_company
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.edit_requests import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, approver_roles_for
from witar.core.leave import LEAVE_TYPES, VACATION, LeaveValidationError, compute_span
from witar.core.notifications import (
    TYPE_REQUEST,
    TYPE_REQUEST_APPROVED,
    TYPE_REQUEST_REJECTED,
    notify_roles,
    notify_user,
)
from witar.crud.company import get_or_create_settings
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.leave_request import LeaveRequest
from witar.models.user import User
from witar.schemas.leave_request import LeaveDecisionIn, LeaveRequestCreate, LeaveRequestOut, LeaveStats

router = APIRouter(prefix="/leave-requests", tags=["leave-requests"])

logger = logging.getLogger(__name__)

_TYPE_LABELS = {
    "vacation": "vacation",
    "permission": "permission",
    "sick_leave": "sick leave",
    "other": "leave",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_out(req: LeaveRequest, requester: Optional[User] = None) -> LeaveRequestOut:
    out = LeaveRequestOut.model_validate(req)
    if requester is not None:
        out.requester_email = requester.email
        out.requester_name = requester.full_name
    return out


def _describe(req: LeaveRequest) -> str:
    if req.start_time is not None or req.start_date == req.end_date:
        return f"{_TYPE_LABELS[req.request_type]} on {req.start_date.isoformat()}"
    return f"{_TYPE_LABELS[req.request_type]} from {req.start_date.isoformat()} to {req.end_date.isoformat()}"


async def _vacation_days_used(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID, year: int) -> int:
    """Approved and pending vacation days starting in `year`."""
    stmt = select(func.coalesce(func.sum(LeaveRequest.duration_days), 0)).where(
        LeaveRequest.company_id == company_id,
        LeaveRequest.user_id == user_id,
        LeaveRequest.request_type == VACATION,
        LeaveRequest.status.in_((STATUS_APPROVED, STATUS_PENDING)),
        LeaveRequest.start_date >= date(year, 1, 1),
        LeaveRequest.start_date < date(year + 1, 1, 1),
    )
    return int((await db.execute(stmt)).scalar() or 0)


async def _get_company_request(db: AsyncSession, company_id: uuid.UUID, request_id: uuid.UUID) -> LeaveRequest:
    req = (
        await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id, LeaveRequest.company_id == company_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if req is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    return req


# ---------------------------------------------------------
# Requester side
# ---------------------------------------------------------
@router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    payload: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_CREATE)),
):
    if not payload.reason.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "REASON_REQUIRED", "message": "A reason is required."},
        )

    try:
        span = compute_span(
            payload.request_type,
            start_date=payload.start_date,
            end_date=payload.end_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
    except LeaveValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": e.code, "message": e.message},
        )

    cs = await get_or_create_settings(db, company.id)

    if payload.request_type == VACATION:
        used = await _vacation_days_used(db, company.id, member.user_id, span.start_date.year)
        if used + (span.duration_days or 0) > cs.max_vacation_days:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={
                    "error": "VACATION_LIMIT_EXCEEDED",
                    "message": "Not enough vacation days left for this year.",
                    "max_vacation_days": cs.max_vacation_days,
                    "used_days": used,
                    "requested_days": span.duration_days,
                },
            )

    now = _utcnow()
    auto_approve = bool(cs.auto_approve_requests)
    req = LeaveRequest(
        company_id=company.id,
        user_id=member.user_id,
        request_type=payload.request_type,
        start_date=span.start_date,
        end_date=span.end_date,
        start_time=span.start_time,
        end_time=span.end_time,
        duration_days=span.duration_days,
        duration_hours=span.duration_hours,
        reason=payload.reason.strip(),
        notes=(payload.notes or "").strip() or None,
        status=STATUS_APPROVED if auto_approve else STATUS_PENDING,
        approved_at=now if auto_approve else None,
    )
    db.add(req)
    await db.flush()

    requester = await db.get(User, member.user_id)
    if auto_approve:
        await notify_user(
            db,
            company_id=company.id,
            recipient_id=member.user_id,
            sender_id=None,
            ntype=TYPE_REQUEST_APPROVED,
            title="Request approved",
            message=f"Your {_describe(req)} was approved automatically",
            data={"leave_request_id": str(req.id)},
        )
    else:
        await notify_roles(
            db,
            company_id=company.id,
            roles=approver_roles_for(member.role),
            sender_id=member.user_id,
            ntype=TYPE_REQUEST,
            title="New request",
            message=f"{requester.display_name} requested {_describe(req)}",
            data={"leave_request_id": str(req.id), "request_type": req.request_type},
            exclude_user_id=member.user_id,
        )

    await db.commit()
    await db.refresh(req)
    logger.info("Leave request %s (%s, %s) filed by %s", req.id, req.request_type, req.status, member.user_id)
    return _to_out(req, requester)


@router.get("/me", response_model=List[LeaveRequestOut])
async def my_leave_requests(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    rows = (
        await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.company_id == company.id, LeaveRequest.user_id == member.user_id)
            .order_by(LeaveRequest.created_at.desc())
        )
    ).scalars().all()
    return [_to_out(r) for r in rows]


@router.delete("/me/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_my_leave_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    req = await _get_company_request(db, company.id, request_id)
    if req.user_id != member.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    if req.status != STATUS_PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "REQUEST_ALREADY_DECIDED", "message": "Only pending requests can be cancelled."},
        )

    await db.delete(req)
    await db.commit()
    return None


# ---------------------------------------------------------
# Calendar (every member)
# ---------------------------------------------------------
@router.get("/calendar", response_model=List[LeaveRequestOut])
async def leave_calendar(
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    if date_to < date_from:
        raise HTTPException(status_code=422, detail="date_to must be on or after date_from")

    rows = (
        await db.execute(
            select(LeaveRequest, User)
            .join(User, User.id == LeaveRequest.user_id)
            .where(
                LeaveRequest.company_id == company.id,
                LeaveRequest.status == STATUS_APPROVED,
                LeaveRequest.start_date <= date_to,
                LeaveRequest.end_date >= date_from,
            )
            .order_by(LeaveRequest.start_date.asc())
        )
    ).all()
    return [_to_out(r, u) for r, u in rows]


# ---------------------------------------------------------
# Approver side
# ---------------------------------------------------------
@router.get("", response_model=List[LeaveRequestOut])
async def list_leave_requests(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    request_type: Optional[str] = Query(default=None),
    user_id: Optional[uuid.UUID] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    if status_filter and status_filter not in (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, "all"):
        raise HTTPException(status_code=422, detail="status must be pending, approved, rejected or all")
    if request_type and request_type not in LEAVE_TYPES:
        raise HTTPException(status_code=422, detail=f"request_type must be one of: {', '.join(LEAVE_TYPES)}")

    stmt = (
        select(LeaveRequest, User)
        .join(User, User.id == LeaveRequest.user_id)
        .where(LeaveRequest.company_id == company.id)
        .order_by(LeaveRequest.created_at.desc())
    )
    if status_filter and status_filter != "all":
        stmt = stmt.where(LeaveRequest.status == status_filter)
    if request_type:
        stmt = stmt.where(LeaveRequest.request_type == request_type)
    if user_id is not None:
        stmt = stmt.where(LeaveRequest.user_id == user_id)

    scope = await approval_scope(db, member)
    if scope is not None:
        stmt = stmt.where(LeaveRequest.user_id.in_(list(scope)))

    rows = (await db.execute(stmt)).all()
    return [_to_out(r, u) for r, u in rows]


@router.get("/stats", response_model=LeaveStats)
async def leave_request_stats(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    stmt = (
        select(LeaveRequest.status, LeaveRequest.request_type, func.count(LeaveRequest.id))
        .where(LeaveRequest.company_id == company.id)
        .group_by(LeaveRequest.status, LeaveRequest.request_type)
    )
    scope = await approval_scope(db, member)
    if scope is not None:
        stmt = stmt.where(LeaveRequest.user_id.in_(list(scope)))

    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    for st, rtype, n in (await db.execute(stmt)).all():
        by_status[st] = by_status.get(st, 0) + int(n)
        by_type[rtype] = by_type.get(rtype, 0) + int(n)

    return LeaveStats(
        pending=by_status.get(STATUS_PENDING, 0),
        approved=by_status.get(STATUS_APPROVED, 0),
        rejected=by_status.get(STATUS_REJECTED, 0),
        total=sum(by_status.values()),
        by_type=by_type,
    )


async def _decide(
    db: AsyncSession,
    *,
    company: Company,
    member: CompanyMembership,
    request_id: uuid.UUID,
    new_status: str,
    comments: Optional[str],
) -> LeaveRequestOut:
    req = await _get_company_request(db, company.id, request_id)
    await ensure_can_decide(
        db, company_id=company.id, requester_id=req.user_id, request_status=req.status, approver=member
    )

    req.status = new_status
    req.approved_by = member.user_id
    req.approved_at = _utcnow()
    req.comments = comments

    approver = await db.get(User, member.user_id)
    approved = new_status == STATUS_APPROVED
    verb = "approved" if approved else "rejected"
    await notify_user(
        db,
        company_id=company.id,
        recipient_id=req.user_id,
        sender_id=member.user_id,
        ntype=TYPE_REQUEST_APPROVED if approved else TYPE_REQUEST_REJECTED,
        title=f"Request {verb}",
        message=f"{approver.display_name} {verb} your {_describe(req)}" + (f": {comments}" if comments else ""),
        data={"leave_request_id": str(req.id), "comments": comments},
    )

    await db.commit()
    await db.refresh(req)
    logger.info("Leave request %s %s by %s", req.id, verb, member.user_id)
    return _to_out(req, await db.get(User, req.user_id))


@router.post("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave_request(
    request_id: uuid.UUID,
    payload: Optional[LeaveDecisionIn] = None,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    comments = ((payload.comments if payload else None) or "").strip() or None
    return await _decide(
        db, company=company, member=member, request_id=request_id, new_status=STATUS_APPROVED, comments=comments
    )


@router.post("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave_request(
    request_id: uuid.UUID,
    payload: LeaveDecisionIn,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    comments = (payload.comments or "").strip()
    if not comments:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "COMMENTS_REQUIRED", "message": "A reason is required to reject a request."},
        )
    return await _decide(
        db, company=company, member=member, request_id=request_id, new_status=STATUS_REJECTED, comments=comments
    )
