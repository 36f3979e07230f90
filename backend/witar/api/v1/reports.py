# witar/api/v1/reports.py
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import get_current_company
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.leave import LEAVE_TYPES
from witar.core.reports import (
    RANGE_DAYS,
    attendance_by_user,
    attendance_csv,
    average_approval_hours,
    count_by,
    range_start,
)
from witar.core.roles import CompanyRole
from witar.core.time_clock import local_day_bounds
from witar.crud.company import company_timezone, get_or_create_settings
from witar.crud.membership import team_user_ids
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.department import Department
from witar.models.leave_request import LeaveRequest
from witar.models.time_entry import TimeEntry
from witar.models.time_entry_edit_request import TimeEntryEditRequest
from witar.models.user import User
from witar.schemas.report import AttendanceReport, AttendanceRow, DailyTotal, RequestsReport, RequestSummary

router = APIRouter(prefix="/reports", tags=["reports"])

logger = logging.getLogger(__name__)

RangeName = Literal["week", "month", "quarter", "year"]

TOP_PERFORMERS = 5
DEFAULT_ATTENDANCE_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hours(seconds: int) -> float:
    return round(seconds / 3600, 2)


def _count_departments(names: list[Optional[str]]) -> dict[str, int]:
    out: dict[str, int] = {}
    for name in names:
        key = name or "unassigned"
        out[key] = out.get(key, 0) + 1
    return out


async def _scope(db: AsyncSession, member: CompanyMembership) -> Optional[set[uuid.UUID]]:
    """None = whole company; a MANAGER reports on their team."""
    if member.role == CompanyRole.MANAGER.value:
        return await team_user_ids(db, member)
    return None


async def _members(db: AsyncSession, company_id: uuid.UUID, scope: Optional[set[uuid.UUID]]):
    stmt = (
        select(CompanyMembership, User, Department.name)
        .join(User, User.id == CompanyMembership.user_id)
        .outerjoin(Department, Department.id == CompanyMembership.department_id)
        .where(CompanyMembership.company_id == company_id)
        .where(CompanyMembership.is_active.is_(True))
    )
    if scope is not None:
        stmt = stmt.where(CompanyMembership.user_id.in_(list(scope)))
    return (await db.execute(stmt)).all()


async def _entries(
    db: AsyncSession,
    company_id: uuid.UUID,
    scope: Optional[set[uuid.UUID]],
    start: Optional[datetime],
    end: Optional[datetime],
    user_id: Optional[uuid.UUID] = None,
) -> list[TimeEntry]:
    stmt = select(TimeEntry).where(TimeEntry.company_id == company_id).order_by(TimeEntry.entry_time.asc())
    if scope is not None:
        stmt = stmt.where(TimeEntry.user_id.in_(list(scope)))
    if user_id is not None:
        stmt = stmt.where(TimeEntry.user_id == user_id)
    if start is not None:
        stmt = stmt.where(TimeEntry.entry_time >= start)
    if end is not None:
        stmt = stmt.where(TimeEntry.entry_time < end)
    return list((await db.execute(stmt)).scalars().all())


# ---------------------------------------------------------
# Company overview
# ---------------------------------------------------------
@router.get("/company")
async def company_report(
    range_name: RangeName = Query(default="month", alias="range"),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REPORTS_READ)),
):
    now = _utcnow()
    start = range_start(range_name, now)
    tz = await company_timezone(db, company.id)
    cs = await get_or_create_settings(db, company.id)
    scope = await _scope(db, member)

    members = await _members(db, company.id, scope)
    users = {m.user_id: u for m, u, _ in members}

    entries = await _entries(db, company.id, scope, start, None)
    per_user, per_day = attendance_by_user(entries, now=now, tz=tz, max_session_hours=settings.MAX_SESSION_HOURS)

    total_seconds = sum(per_day.values())
    worked_days = len([d for d, secs in per_day.items() if secs > 0])

    by_employee = []
    for uid, ua in per_user.items():
        u = users.get(uid)
        by_employee.append(
            {
                "user_id": str(uid),
                "name": u.display_name if u else None,
                "hours": ua.worked_hours,
                "days_worked": ua.days_worked,
            }
        )
    by_employee.sort(key=lambda r: r["hours"], reverse=True)

    # expected working days in the range, from the company's week length
    expected_days = max(1.0, RANGE_DAYS[range_name] * cs.working_days_per_week / 7)
    attendance_rates = [
        min(100.0, (per_user[m.user_id].days_worked if m.user_id in per_user else 0) / expected_days * 100)
        for m, _, _ in members
    ]

    lr_stmt = select(LeaveRequest).where(LeaveRequest.company_id == company.id, LeaveRequest.created_at >= start)
    if scope is not None:
        lr_stmt = lr_stmt.where(LeaveRequest.user_id.in_(list(scope)))
    leave_requests = (await db.execute(lr_stmt)).scalars().all()

    return {
        "range": range_name,
        "date_from": start.isoformat(),
        "date_to": now.isoformat(),
        "employees": {
            "total": len(members),
            "by_role": count_by([m for m, _, _ in members], "role"),
            "by_department": _count_departments([dname for _, _, dname in members]),
        },
        "time_entries": {
            "total": len(entries),
            "total_hours": _hours(total_seconds),
            "average_hours_per_day": _hours(total_seconds // worked_days) if worked_days else 0.0,
            "by_employee": by_employee,
            "by_date": {d.isoformat(): _hours(secs) for d, secs in sorted(per_day.items())},
        },
        "requests": {
            "total": len(leave_requests),
            "by_status": count_by(leave_requests, "status"),
            "by_type": count_by(leave_requests, "request_type"),
        },
        "productivity": {
            "average_attendance": round(sum(attendance_rates) / len(attendance_rates), 1) if attendance_rates else 0.0,
            "top_performers": by_employee[:TOP_PERFORMERS],
        },
    }


# ---------------------------------------------------------
# Attendance
# ---------------------------------------------------------
async def _attendance(
    db: AsyncSession,
    company: Company,
    member: CompanyMembership,
    date_from: Optional[date],
    date_to: Optional[date],
    user_id: Optional[uuid.UUID],
) -> AttendanceReport:
    tz = await company_timezone(db, company.id)
    now = _utcnow()
    date_to = date_to or now.astimezone(tz).date()
    date_from = date_from or date_to - timedelta(days=DEFAULT_ATTENDANCE_DAYS - 1)
    if date_to < date_from:
        raise HTTPException(status_code=422, detail="date_to must be on or after date_from")

    start, end = local_day_bounds(date_from, date_to, tz)
    scope = await _scope(db, member)
    if user_id is not None and scope is not None and user_id not in scope:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    entries = await _entries(db, company.id, scope, start, end, user_id)
    per_user, per_day = attendance_by_user(
        entries, now=min(now, end), tz=tz, max_session_hours=settings.MAX_SESSION_HOURS
    )

    members = await _members(db, company.id, scope)
    rows = []
    for m, u, _ in members:
        if user_id is not None and m.user_id != user_id:
            continue
        ua = per_user.get(m.user_id)
        rows.append(
            AttendanceRow(
                user_id=m.user_id,
                name=u.full_name,
                email=u.email,
                days_worked=ua.days_worked if ua else 0,
                worked_hours=ua.worked_hours if ua else 0.0,
                sessions=ua.sessions if ua else 0,
            )
        )
    rows.sort(key=lambda r: (r.name or r.email).lower())

    return AttendanceReport(
        date_from=date_from,
        date_to=date_to,
        employees=rows,
        daily_totals=[DailyTotal(date=d, worked_hours=_hours(s)) for d, s in sorted(per_day.items())],
        total_hours=_hours(sum(per_day.values())),
    )


@router.get("/attendance", response_model=AttendanceReport)
async def attendance_report(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    user_id: Optional[uuid.UUID] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REPORTS_READ)),
):
    return await _attendance(db, company, member, date_from, date_to, user_id)


@router.get("/attendance.csv")
async def attendance_report_csv(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    user_id: Optional[uuid.UUID] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REPORTS_EXPORT)),
):
    report = await _attendance(db, company, member, date_from, date_to, user_id)
    body = attendance_csv([r.model_dump(mode="json") for r in report.employees])
    filename = f"attendance-{report.date_from.isoformat()}-{report.date_to.isoformat()}.csv"

    logger.info("Attendance CSV exported for company %s by %s", company.id, member.user_id)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------
# Requests
# ---------------------------------------------------------
@router.get("/requests", response_model=RequestsReport)
async def requests_report(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    request_type: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.REPORTS_READ)),
):
    if request_type and request_type not in LEAVE_TYPES:
        raise HTTPException(status_code=422, detail=f"request_type must be one of: {', '.join(LEAVE_TYPES)}")

    tz = await company_timezone(db, company.id)
    start, end = local_day_bounds(date_from, date_to, tz)
    scope = await _scope(db, member)

    lr = select(LeaveRequest).where(LeaveRequest.company_id == company.id)
    er = select(TimeEntryEditRequest).where(TimeEntryEditRequest.company_id == company.id)
    if scope is not None:
        lr = lr.where(LeaveRequest.user_id.in_(list(scope)))
        er = er.where(TimeEntryEditRequest.user_id.in_(list(scope)))
    if start is not None:
        lr = lr.where(LeaveRequest.created_at >= start)
        er = er.where(TimeEntryEditRequest.created_at >= start)
    if end is not None:
        lr = lr.where(LeaveRequest.created_at < end)
        er = er.where(TimeEntryEditRequest.created_at < end)
    if status_filter:
        lr = lr.where(LeaveRequest.status == status_filter)
        er = er.where(TimeEntryEditRequest.status == status_filter)
    if request_type:
        lr = lr.where(LeaveRequest.request_type == request_type)

    leave = (await db.execute(lr)).scalars().all()
    edits = (await db.execute(er)).scalars().all()

    return RequestsReport(
        leave_requests=RequestSummary(
            total=len(leave),
            by_status=count_by(leave, "status"),
            by_type=count_by(leave, "request_type"),
            average_approval_hours=average_approval_hours(leave),
        ),
        time_entry_edit_requests=RequestSummary(
            total=len(edits),
            by_status=count_by(edits, "status"),
            by_type=count_by(edits, "request_type"),
            average_approval_hours=average_approval_hours(edits),
        ),
    )
