# witar/core/auto_close.py
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from witar.core.notifications import TYPE_TIME_CLOCK, notify_roles
from witar.core.roles import STAFF_ROLES
from witar.core.time_clock import (
    BREAK_END,
    CLOCK_IN,
    CLOCK_OUT,
    STATE_ON_BREAK,
    reconstruct_session,
    zone_or_utc,
)
from witar.crud.company import get_or_create_settings
from witar.models.time_entry import TimeEntry

logger = logging.getLogger(__name__)

AUTO_CLOSE_NOTE = "Automatic close at end of day"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def end_of_local_day(started_at: datetime, tz: ZoneInfo) -> datetime:
    """23:59:00 local time of the day `started_at` falls on, as UTC."""
    local_day = started_at.astimezone(tz).date()
    return datetime.combine(local_day, time(23, 59), tzinfo=tz).astimezone(timezone.utc)


async def _close_user_session(
    db: AsyncSession,
    company_id: uuid.UUID,
    user_id: uuid.UUID,
    last_clock_in: datetime,
    *,
    now: datetime,
    tz_cache: dict[uuid.UUID, ZoneInfo],
) -> Optional[bool]:
    """
    None when the user has no open session, False when it is open but its
    day has not ended yet, True when closing entries were added.
    """
    entries = (
        await db.execute(
            select(TimeEntry)
            .where(TimeEntry.company_id == company_id)
            .where(TimeEntry.user_id == user_id)
            .where(TimeEntry.entry_time >= last_clock_in)
        )
    ).scalars().all()

    session = reconstruct_session(entries, now=now, max_session_hours=None)
    if not session.is_open:
        return None

    if company_id not in tz_cache:
        cs = await get_or_create_settings(db, company_id)
        tz_cache[company_id] = zone_or_utc(cs.timezone)

    close_at = end_of_local_day(session.started_at, tz_cache[company_id])
    if now < close_at:
        return False

    close_at = max(close_at, max(e.entry_time for e in entries))

    if session.state == STATE_ON_BREAK:
        db.add(
            TimeEntry(
                company_id=company_id,
                user_id=user_id,
                entry_type=BREAK_END,
                entry_time=close_at,
                notes=AUTO_CLOSE_NOTE,
            )
        )
    db.add(
        TimeEntry(
            company_id=company_id,
            user_id=user_id,
            entry_type=CLOCK_OUT,
            entry_time=close_at,
            notes=AUTO_CLOSE_NOTE,
        )
    )
    return True


async def auto_close_open_sessions(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """
    Close every session still open at the end of its local day: a break_end
    if the user is on break, then a clock_out, both at 23:59 of the clock-in
    day. Staff of each affected company get one summary notification.

    Each user runs in its own savepoint, so a failure is rolled back and
    reported without losing the other users' closes.
    """
    now = now or _utcnow()

    # an open session always starts at the user's latest clock-in
    pairs = (
        await db.execute(
            select(TimeEntry.company_id, TimeEntry.user_id, func.max(TimeEntry.entry_time))
            .where(TimeEntry.entry_type == CLOCK_IN)
            .group_by(TimeEntry.company_id, TimeEntry.user_id)
        )
    ).all()

    closed = 0
    total_open = 0
    errors: list[dict] = []
    closed_by_company: dict[uuid.UUID, int] = defaultdict(int)
    tz_cache: dict[uuid.UUID, ZoneInfo] = {}

    for company_id, user_id, last_clock_in in pairs:
        try:
            async with db.begin_nested():
                outcome = await _close_user_session(
                    db, company_id, user_id, last_clock_in, now=now, tz_cache=tz_cache
                )
        except Exception as exc:  # one bad user must not stop the batch
            logger.exception("Auto-close failed for user %s in company %s", user_id, company_id)
            errors.append({"company_id": str(company_id), "user_id": str(user_id), "error": str(exc)})
            tz_cache.pop(company_id, None)
            continue

        if outcome is None:
            continue
        total_open += 1
        if outcome:
            closed += 1
            closed_by_company[company_id] += 1

    for company_id, count in closed_by_company.items():
        await notify_roles(
            db,
            company_id=company_id,
            roles=STAFF_ROLES,
            sender_id=None,
            ntype=TYPE_TIME_CLOCK,
            title="Automatic close of time entries",
            message=f"{count} open time entries were closed automatically at the end of the day.",
            data={"closed_entries": count, "action": "auto_close"},
        )

    await db.commit()
    logger.info("Auto-close run: %s closed, %s open, %s errors", closed, total_open, len(errors))

    return {
        "closed_entries": closed,
        "total_open": total_open,
        "errors": errors,
        "timestamp": now.isoformat(),
    }
