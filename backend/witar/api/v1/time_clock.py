# witar/api/v1/time_clock.py
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.api.deps.company import (
    get_current_company,
    get_current_membership,
    require_active_company,
    require_company_roles,
)
from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.notifications import TYPE_TIME_CLOCK, notify_roles
from witar.core.roles import STAFF_ROLES, CompanyRole
from witar.core.time_clock import (
    TimeClockError,
    format_duration,
    local_day_bounds,
    reconstruct_session,
    summarize_sessions,
    total_worked_seconds,
    validate_transition,
)
from witar.crud.company import company_timezone, get_or_create_settings
from witar.crud.membership import team_user_ids
from witar.db.session import get_db
from witar.models.company import Company
from witar.models.company_membership import CompanyMembership
from witar.models.time_entry import TimeEntry
from witar.models.user import User
from witar.schemas.time_entry import (
    ActiveMemberOut,
    ClockSessionOut,
    CompanyTimeEntryOut,
    MyTimeEntriesOut,
    PunchIn,
    PunchOut,
    TimeEntryOut,
)

router = APIRouter(tags=["time-clock"])

logger = logging.getLogger(__name__)

_PUNCH_LABELS = {
    "clock_in": "clocked in",
    "clock_out": "clocked out",
    "break_start": "started a break",
    "break_end": "ended a break",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _session_window(now: datetime) -> datetime:
    # anything older cannot belong to a non-stale open session
    return now - timedelta(hours=settings.MAX_SESSION_HOURS + 24)


async def _recent_entries(
    db: AsyncSession,
    company_id: uuid.UUID,
    user_ids: Optional[set[uuid.UUID]],
    now: datetime,
) -> list[TimeEntry]:
    stmt = (
        select(TimeEntry)
        .where(TimeEntry.company_id == company_id)
        .where(TimeEntry.entry_time >= _session_window(now))
        .order_by(TimeEntry.entry_time.asc())
    )
    if user_ids is not None:
        stmt = stmt.where(TimeEntry.user_id.in_(list(user_ids)))
    return list((await db.execute(stmt)).scalars().all())


def _location_required(member: CompanyMembership, company_default: bool) -> bool:
    if member.require_location is not None:
        return bool(member.require_location)
    return bool(company_default)


# ---------------------------------------------------------
# Punch
# ---------------------------------------------------------
@router.post("/time-clock/punch", response_model=PunchOut, status_code=status.HTTP_201_CREATED)
async def punch(
    payload: PunchIn,
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(require_active_company),
    member: CompanyMembership = Depends(require_permissions(PERM.TIME_PUNCH)),
):
    now = _utcnow()

    cs = await get_or_create_settings(db, company.id)
    if _location_required(member, cs.require_location) and (
        payload.location_lat is None or payload.location_lng is None
    ):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "LOCATION_REQUIRED", "message": "Location is required to register this punch."},
        )

    entries = await _recent_entries(db, company.id, {member.user_id}, now)
    session = reconstruct_session(entries, now=now, max_session_hours=settings.MAX_SESSION_HOURS)

    try:
        validate_transition(session, payload.entry_type)
    except TimeClockError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "INVALID_TRANSITION",
                "message": e.message,
                "state": e.state,
                "allowed_entry_types": list(e.allowed),
            },
        )

    entry = TimeEntry(
        company_id=company.id,
        user_id=member.user_id,
        entry_type=payload.entry_type,
        entry_time=now,
        location_lat=payload.location_lat,
        location_lng=payload.location_lng,
        notes=(payload.notes or "").strip() or None,
    )
    db.add(entry)
    await db.flush()

    user = await db.get(User, member.user_id)
    who = user.display_name if user else "An employee"
    await notify_roles(
        db,
        company_id=company.id,
        roles=STAFF_ROLES,
        sender_id=member.user_id,
        ntype=TYPE_TIME_CLOCK,
        title="Time clock",
        message=f"{who} {_PUNCH_LABELS[payload.entry_type]}",
        data={"time_entry_id": str(entry.id), "entry_type": payload.entry_type, "user_id": str(member.user_id)},
        exclude_user_id=member.user_id,
    )

    await db.commit()
    await db.refresh(entry)

    new_session = reconstruct_session([*entries, entry], now=now, max_session_hours=settings.MAX_SESSION_HOURS)
    logger.info("User %s %s in company %s", member.user_id, payload.entry_type, company.id)
    return PunchOut(entry=TimeEntryOut.model_validate(entry), session=ClockSessionOut.from_session(new_session))


@router.get("/time-clock/status", response_model=ClockSessionOut)
async def clock_status(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    now = _utcnow()
    entries = await _recent_entries(db, company.id, {member.user_id}, now)
    session = reconstruct_session(entries, now=now, max_session_hours=settings.MAX_SESSION_HOURS)
    return ClockSessionOut.from_session(session)


# ---------------------------------------------------------
# Time entries
# ---------------------------------------------------------
@router.get("/time-entries/me", response_model=MyTimeEntriesOut)
async def my_time_entries(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(get_current_membership),
):
    if date_from and date_to and date_to < date_from:
        raise HTTPException(status_code=422, detail="date_to must be on or after date_from")

    tz = await company_timezone(db, company.id)
    start, end = local_day_bounds(date_from, date_to, tz)

    stmt = (
        select(TimeEntry)
        .where(TimeEntry.company_id == company.id, TimeEntry.user_id == member.user_id)
        .order_by(TimeEntry.entry_time.asc())
    )
    if start is not None:
        stmt = stmt.where(TimeEntry.entry_time >= start)
    if end is not None:
        stmt = stmt.where(TimeEntry.entry_time < end)

    entries = list((await db.execute(stmt)).scalars().all())
    worked = total_worked_seconds(
        summarize_sessions(entries, now=_utcnow(), max_session_hours=settings.MAX_SESSION_HOURS)
    )
    return MyTimeEntriesOut(
        entries=[TimeEntryOut.model_validate(e) for e in entries],
        worked_seconds=worked,
        worked=format_duration(worked),
    )


@router.get("/time-entries", response_model=List[CompanyTimeEntryOut])
async def company_time_entries(
    user_id: Optional[uuid.UUID] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_permissions(PERM.TIME_READ)),
):
    """
    OWNER/ADMIN see every entry; a MANAGER sees their team only.
    """
    tz = await company_timezone(db, company.id)
    start, end = local_day_bounds(date_from, date_to, tz)

    stmt = (
        select(TimeEntry, User)
        .join(User, User.id == TimeEntry.user_id)
        .where(TimeEntry.company_id == company.id)
        .order_by(TimeEntry.entry_time.desc())
        .limit(limit)
    )
    if member.role == CompanyRole.MANAGER.value:
        stmt = stmt.where(TimeEntry.user_id.in_(list(await team_user_ids(db, member))))
    if user_id is not None:
        stmt = stmt.where(TimeEntry.user_id == user_id)
    if start is not None:
        stmt = stmt.where(TimeEntry.entry_time >= start)
    if end is not None:
        stmt = stmt.where(TimeEntry.entry_time < end)

    out = []
    for entry, user in (await db.execute(stmt)).all():
        row = CompanyTimeEntryOut.model_validate(entry)
        row.user_email = user.email
        row.user_name = user.full_name
        out.append(row)
    return out


@router.get("/time-entries/active", response_model=List[ActiveMemberOut])
async def active_members(
    db: AsyncSession = Depends(get_db),
    company: Company = Depends(get_current_company),
    member: CompanyMembership = Depends(require_company_roles("OWNER", "ADMIN", "MANAGER")),
):
    now = _utcnow()
    scope = await team_user_ids(db, member) if member.role == CompanyRole.MANAGER.value else None

    by_user: dict[uuid.UUID, list[TimeEntry]] = defaultdict(list)
    for e in await _recent_entries(db, company.id, scope, now):
        by_user[e.user_id].append(e)

    sessions = {}
    for uid, entries in by_user.items():
        s = reconstruct_session(entries, now=now, max_session_hours=settings.MAX_SESSION_HOURS)
        if s.is_open:
            sessions[uid] = s
    if not sessions:
        return []

    users = (await db.execute(select(User).where(User.id.in_(list(sessions))))).scalars().all()
    return sorted(
        (
            ActiveMemberOut(
                user_id=u.id,
                email=u.email,
                full_name=u.full_name,
                session=ClockSessionOut.from_session(sessions[u.id]),
            )
            for u in users
        ),
        key=lambda a: a.session.started_at,
    )
