# witar/api/v1/time_entry_edit_requests.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from witar.api.deps.approvals import approval_scope, ensure_can_decide
from witar.api.deps.company import get_current_company, get_current_membership, require_active_company
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.edit_requests import (
    ACTION_CREATE,
    ACTION_DELETE,
    ADD_ENTRY,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    EditRequestError,
    apply_update,
    approver_roles_for,
    compute_change,
    validate_proposal,
)
from witar.core.notifications import (
    TYPE_REQUEST_APPROVED,
    TYPE_REQUEST_REJECTED,
    TYPE_TIME_EDIT_REQUEST,
    notify_roles,
    notify_user,
)
from witar.db.session import get_db
from witar.db.types import ensure_utc
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.time_entry import TimeEntry
from witar.models.time_entry_edit_request import TimeEntryEditRequest
from witar.models.user import User
from witar.schemas.edit_request import DecisionIn, EditRequestCreate, EditRequestOut, RequestStats

router = APIRouter(prefix="/time-entry-edit-requests", tags=["time-entry-edit-requests"])

logger = logging.getLogger(__name__)

StatusFilter = Literal["pending", "approved", "rejected", "all"]

_TYPE_LABELS = {
    "edit_time": "time change",
    "edit_type": "type change",
    "delete_entry": "entry deletion",
    "add_entry": "missing entry",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_out(req: TimeEntryEditRequest, requester: Optional[User] = None, approver: Optional[User] = None) -> EditRequestOut:
    out = EditRequestOut.model_validate(req)
    if requester is not None:
        out.requester_email = requester.email
        out.requester_name = requester.full_name
    if approver is not None:
        out.approver_email = approver.email
    return out


async def _get_company_request(
    db: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> TimeEntryEditRequest:
    req = (
        await db.execute(
            select(TimeEntryEditRequest)
            .where(TimeEntryEditRequest.id == request_id, TimeEntryEditRequest.company_id == company_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if req is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Edit request not found")
    return req


# ---------------------------------------------------------
# Requester side
# ---------------------------------------------------------
@router.post("", response_model=EditRequestOut, status_code=status.HTTP_201_CREATED)
async def create_edit_request(
    payload: EditRequestCreate,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_CREATE)),
):
    proposed_time = ensure_utc(payload.proposed_entry_time)

    try:
        validate_proposal(
            payload.request_type,
            time_entry_id=payload.time_entry_id,
            proposed_entry_time=proposed_time,
            proposed_entry_type=payload.proposed_entry_type,
            reason=payload.reason,
        )
    except EditRequestError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": e.code, "message": e.message},
        )

    entry: Optional[TimeEntry] = None
    if payload.request_type != ADD_ENTRY:
        entry = await db.get(TimeEntry, payload.time_entry_id)
        if entry is None or entry.company_id != company.id or entry.user_id != member.user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time entry not found")

        pending = (
            await db.execute(
                select(TimeEntryEditRequest.id).where(
                    TimeEntryEditRequest.time_entry_id == entry.id,
                    TimeEntryEditRequest.status == STATUS_PENDING,
                )
            )
        ).first()
        if pending is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="There is already a pending request for this time entry",
            )

    req = TimeEntryEditRequest(
        company_id=company.id,
        user_id=member.user_id,
        time_entry_id=entry.id if entry else None,
        request_type=payload.request_type,
        current_entry_type=entry.entry_type if entry else None,
        current_entry_time=entry.entry_time if entry else None,
        current_notes=entry.notes if entry else None,
        proposed_entry_type=payload.proposed_entry_type,
        proposed_entry_time=proposed_time,
        proposed_notes=payload.proposed_notes,
        reason=payload.reason.strip(),
        status=STATUS_PENDING,
    )
    db.add(req)
    await db.flush()

    requester = await db.get(User, member.user_id)
    await notify_roles(
        db,
        company_id=company.id,
        roles=approver_roles_for(member.role),
        sender_id=member.user_id,
        ntype=TYPE_TIME_EDIT_REQUEST,
        title="Time entry edit request",
        message=f"{requester.display_name} requested a {_TYPE_LABELS[payload.request_type]}",
        data={"edit_request_id": str(req.id), "request_type": payload.request_type},
        exclude_user_id=member.user_id,
    )

    await db.commit()
    await db.refresh(req)
    logger.info("Edit request %s (%s) filed by %s", req.id, req.request_type, member.user_id)
    return _to_out(req, requester)


@router.get("/me", response_model=List[EditRequestOut])
async def my_edit_requests(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    approver = aliased(User)
    rows = (
        await db.execute(
            select(TimeEntryEditRequest, approver)
            .outerjoin(approver, approver.id == TimeEntryEditRequest.approved_by)
            .where(
                TimeEntryEditRequest.company_id == company.id,
                TimeEntryEditRequest.user_id == member.user_id,
            )
            .order_by(TimeEntryEditRequest.created_at.desc())
        )
    ).all()
    return [_to_out(req, approver=appr) for req, appr in rows]


@router.delete("/me/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_my_edit_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    req = await _get_company_request(db, company.id, request_id)
    if req.user_id != member.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Edit request not found")
    if req.status != STATUS_PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "REQUEST_ALREADY_DECIDED", "message": "Only pending requests can be cancelled."},
        )

    await db.delete(req)
    await db.commit()
    return None


# ---------------------------------------------------------
# Approver side
# ---------------------------------------------------------
@router.get("", response_model=List[EditRequestOut])
async def list_edit_requests(
    status_filter: StatusFilter = Query(default="pending", alias="status"),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    requester = aliased(User)
    approver = aliased(User)
    stmt = (
        select(TimeEntryEditRequest, requester, approver)
        .join(requester, requester.id == TimeEntryEditRequest.user_id)
        .outerjoin(approver, approver.id == TimeEntryEditRequest.approved_by)
        .where(TimeEntryEditRequest.company_id == company.id)
        .order_by(TimeEntryEditRequest.created_at.desc())
    )
    if status_filter != "all":
        stmt = stmt.where(TimeEntryEditRequest.status == status_filter)

    scope = await approval_scope(db, member)
    if scope is not None:
        stmt = stmt.where(TimeEntryEditRequest.user_id.in_(list(scope)))

    rows = (await db.execute(stmt)).all()
    return [_to_out(req, req_user, appr) for req, req_user, appr in rows]


@router.get("/stats", response_model=RequestStats)
async def edit_request_stats(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    stmt = (
        select(TimeEntryEditRequest.status, func.count(TimeEntryEditRequest.id))
        .where(TimeEntryEditRequest.company_id == company.id)
        .group_by(TimeEntryEditRequest.status)
    )
    scope = await approval_scope(db, member)
    if scope is not None:
        stmt = stmt.where(TimeEntryEditRequest.user_id.in_(list(scope)))

    counts = {s: int(n) for s, n in (await db.execute(stmt)).all()}
    return RequestStats(
        pending=counts.get(STATUS_PENDING, 0),
        approved=counts.get(STATUS_APPROVED, 0),
        rejected=counts.get(STATUS_REJECTED, 0),
        total=sum(counts.values()),
    )


@router.post("/{request_id}/approve", response_model=EditRequestOut)
async def approve_edit_request(
    request_id: uuid.UUID,
    payload: Optional[DecisionIn] = None,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    """
    Approval applies the proposed change to time_entries in the same
    transaction. If the target entry is gone the request stays pending.
    """
    req = await _get_company_request(db, company.id, request_id)
    await ensure_can_decide(
        db, company_id=company.id, requester_id=req.user_id, request_status=req.status, approver=member
    )

    change = compute_change(
        req.request_type,
        proposed_entry_time=req.proposed_entry_time,
        proposed_entry_type=req.proposed_entry_type,
        proposed_notes=req.proposed_notes,
    )

    if change.action == ACTION_CREATE:
        entry = TimeEntry(
            company_id=company.id,
            user_id=req.user_id,
            entry_type=change.entry_type,
            entry_time=change.entry_time,
            notes=change.notes,
        )
        db.add(entry)
        await db.flush()
        req.time_entry_id = entry.id
    else:
        entry = await db.get(TimeEntry, req.time_entry_id) if req.time_entry_id else None
        if entry is None or entry.company_id != company.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error": "TIME_ENTRY_NOT_FOUND", "message": "The time entry no longer exists."},
            )
        if change.action == ACTION_DELETE:
            req.time_entry_id = None
            await db.delete(entry)
        else:
            apply_update(change, entry)

    notes = ((payload.notes if payload else None) or "").strip() or None
    req.status = STATUS_APPROVED
    req.approved_by = member.user_id
    req.approved_at = _utcnow()
    req.approval_notes = notes

    approver = await db.get(User, member.user_id)
    await notify_user(
        db,
        company_id=company.id,
        recipient_id=req.user_id,
        sender_id=member.user_id,
        ntype=TYPE_REQUEST_APPROVED,
        title="Edit request approved",
        message=f"{approver.display_name} approved your {_TYPE_LABELS[req.request_type]} request"
        + (f": {notes}" if notes else ""),
        data={"edit_request_id": str(req.id), "comments": notes},
    )

    await db.commit()
    await db.refresh(req)
    logger.info("Edit request %s approved by %s", req.id, member.user_id)
    requester = await db.get(User, req.user_id)
    return _to_out(req, requester=requester, approver=approver)


@router.post("/{request_id}/reject", response_model=EditRequestOut)
async def reject_edit_request(
    request_id: uuid.UUID,
    payload: DecisionIn,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REQUESTS_APPROVE)),
):
    notes = (payload.notes or "").strip()
    if not notes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "NOTES_REQUIRED", "message": "A reason is required to reject a request."},
        )

    req = await _get_company_request(db, company.id, request_id)
    await ensure_can_decide(
        db, company_id=company.id, requester_id=req.user_id, request_status=req.status, approver=member
    )

    req.status = STATUS_REJECTED
    req.approved_by = member.user_id
    req.approved_at = _utcnow()
    req.approval_notes = notes

    approver = await db.get(User, member.user_id)
    await notify_user(
        db,
        company_id=company.id,
        recipient_id=req.user_id,
        sender_id=member.user_id,
        ntype=TYPE_REQUEST_REJECTED,
        title="Edit request rejected",
        message=f"{approver.display_name} rejected your {_TYPE_LABELS[req.request_type]} request: {notes}",
        data={"edit_request_id": str(req.id), "comments": notes},
    )

    await db.commit()
    await db.refresh(req)
    logger.info("Edit request %s rejected by %s", req.id, member.user_id)
    requester = await db.get(User, req.user_id)
    return _to_out(req, requester=requester, approver=approver)
