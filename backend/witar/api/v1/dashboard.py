# witar/api/v1/dashboard.py
from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company, get_current_membership
from witar.core.config import settings
from witar.core.edit_requests import STATUS_APPROVED, STATUS_PENDING
from witar.core.plan import plan_info
from witar.core.roles import STAFF_ROLES, CompanyRole
from witar.core.time_clock import (
    STATE_ON_BREAK,
    STATE_WORKING,
    format_duration,
    local_day_bounds,
    reconstruct_session,
    summarize_sessions,
    total_worked_seconds,
)
from witar.crud.company import company_timezone, resolve_company_status
from witar.crud.membership import count_active_members, team_user_ids
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.document import Document
from witar.models.leave_request import LeaveRequest
from witar.models.notification import Notification
from witar.models.time_entry import TimeEntry
from witar.models.time_entry_edit_request import TimeEntryEditRequest
from witar.schemas.time_entry import ClockSessionOut

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar() or 0)


async def _unread(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID) -> int:
    return await _count(
        db,
        select(func.count(Notification.id)).where(
            Notification.company_id == company_id,
            or_(Notification.recipient_id == user_id, Notification.recipient_id.is_(None)),
            Notification.read_at.is_(None),
        ),
    )


async def _staff_summary(
    db: AsyncSession,
    company: Company,
    member: CompanyMembership,
    scope: Optional[set[uuid.UUID]],
    now: datetime,
) -> dict:
    def scoped(stmt, column):
        return stmt if scope is None else stmt.where(column.in_(list(scope)))

    employee_count = await count_active_members(db, company.id) if scope is None else len(scope)

    entries_stmt = scoped(
        select(TimeEntry).where(
            TimeEntry.company_id == company.id,
            TimeEntry.entry_time >= now - timedelta(hours=settings.MAX_SESSION_HOURS + 24),
        ),
        TimeEntry.user_id,
    )
    by_user: dict[uuid.UUID, list[TimeEntry]] = defaultdict(list)
    for e in (await db.execute(entries_stmt)).scalars().all():
        by_user[e.user_id].append(e)

    working = on_break = 0
    for entries in by_user.values():
        s = reconstruct_session(entries, now=now, max_session_hours=settings.MAX_SESSION_HOURS)
        if s.state == STATE_WORKING:
            working += 1
        elif s.state == STATE_ON_BREAK:
            on_break += 1

    pending_leave = await _count(
        db,
        scoped(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.company_id == company.id, LeaveRequest.status == STATUS_PENDING
            ),
            LeaveRequest.user_id,
        ),
    )
    pending_edits = await _count(
        db,
        scoped(
            select(func.count(TimeEntryEditRequest.id)).where(
                TimeEntryEditRequest.company_id == company.id,
                TimeEntryEditRequest.status == STATUS_PENDING,
            ),
            TimeEntryEditRequest.user_id,
        ),
    )

    st = await resolve_company_status(db, company, now)
    summary = {
        "role": member.role,
        "employee_count": employee_count,
        "currently_working": working,
        "on_break": on_break,
        "pending_leave_requests": pending_leave,
        "pending_edit_requests": pending_edits,
        "unread_notifications": await _unread(db, company.id, member.user_id),
        "company_status": {
            "status": st.company_status,
            "is_blocked": st.is_blocked,
            "days_remaining": st.days_remaining,
        },
    }
    if scope is None:
        summary["plan"] = plan_info(employee_count)
    return summary


async def _employee_summary(db: AsyncSession, company: Company, member: CompanyMembership, now: datetime) -> dict:
    tz = await company_timezone(db, company.id)
    today = now.astimezone(tz).date()
    day_start, day_end = local_day_bounds(today, today, tz)

    recent = (
        await db.execute(
            select(TimeEntry).where(
                TimeEntry.company_id == company.id,
                TimeEntry.user_id == member.user_id,
                TimeEntry.entry_time >= min(day_start, now - timedelta(hours=settings.MAX_SESSION_HOURS + 24)),
            )
        )
    ).scalars().all()
    session = reconstruct_session(recent, now=now, max_session_hours=settings.MAX_SESSION_HOURS)
    today_entries = [e for e in recent if day_start <= e.entry_time < day_end]
    worked_today = total_worked_seconds(
        summarize_sessions(today_entries, now=now, max_session_hours=settings.MAX_SESSION_HOURS)
    )

    leave_counts = dict(
        (
            await db.execute(
                select(LeaveRequest.status, func.count(LeaveRequest.id))
                .where(LeaveRequest.company_id == company.id, LeaveRequest.user_id == member.user_id)
                .group_by(LeaveRequest.status)
            )
        ).all()
    )
    pending_edits = await _count(
        db,
        select(func.count(TimeEntryEditRequest.id)).where(
            TimeEntryEditRequest.company_id == company.id,
            TimeEntryEditRequest.user_id == member.user_id,
            TimeEntryEditRequest.status == STATUS_PENDING,
        ),
    )
    documents = await _count(
        db,
        select(func.count(Document.id)).where(
            Document.company_id == company.id,
            or_(Document.user_id == member.user_id, Document.user_id.is_(None)),
        ),
    )

    return {
        "role": member.role,
        "session": ClockSessionOut.from_session(session).model_dump(mode="json"),
        "worked_today_seconds": worked_today,
        "worked_today": format_duration(worked_today),
        "pending_leave_requests": int(leave_counts.get(STATUS_PENDING, 0)),
        "approved_leave_requests": int(leave_counts.get(STATUS_APPROVED, 0)),
        "pending_edit_requests": pending_edits,
        "unread_notifications": await _unread(db, company.id, member.user_id),
        "documents": documents,
    }


@router.get("")
async def dashboard(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    """
    OWNER/ADMIN get company figures, a MANAGER the same for their team, an
    EMPLOYEE their own clock and requests.
    """
    now = _utcnow()
    if member.role == CompanyRole.MANAGER.value:
        return await _staff_summary(db, company, member, await team_user_ids(db, member), now)
    if member.role in STAFF_ROLES:
        return await _staff_summary(db, company, member, None, now)
    return await _employee_summary(db, company, member, now)
