# witar/core/reports.py
from __future__ import annotations

import csv
import io
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional, Sequence

from witar.core.time_clock import summarize_sessions, worked_seconds_by_day

RANGE_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}


def range_start(range_name: str, now: datetime) -> datetime:
    days = RANGE_DAYS.get(range_name)
    if days is None:
        raise ValueError(f"range must be one of: {', '.join(RANGE_DAYS)}")
    return now - timedelta(days=days)


@dataclass
class UserAttendance:
    user_id: uuid.UUID
    worked_seconds: int = 0
    sessions: int = 0
    days: set[date] = field(default_factory=set)

    @property
    def days_worked(self) -> int:
        return len(self.days)

    @property
    def worked_hours(self) -> float:
        return round(self.worked_seconds / 3600, 2)


def attendance_by_user(
    entries: Iterable,
    *,
    now: datetime,
    tz: tzinfo,
    max_session_hours: Optional[float] = 24,
) -> tuple[dict[uuid.UUID, UserAttendance], dict[date, int]]:
    """
    Per-user totals and company daily totals (seconds), from raw punches of
    many users.
    """
    grouped: dict[uuid.UUID, list] = defaultdict(list)
    for e in entries:
        grouped[e.user_id].append(e)

    per_user: dict[uuid.UUID, UserAttendance] = {}
    per_day: dict[date, int] = defaultdict(int)

    for uid, user_entries in grouped.items():
        intervals = summarize_sessions(user_entries, now=now, max_session_hours=max_session_hours)
        by_day = worked_seconds_by_day(intervals, tz)
        ua = UserAttendance(user_id=uid)
        ua.sessions = len(intervals)
        ua.worked_seconds = sum(by_day.values())
        ua.days = {d for d, secs in by_day.items() if secs > 0}
        per_user[uid] = ua
        for d, secs in by_day.items():
            per_day[d] += secs

    return per_user, dict(per_day)


def average_approval_hours(rows: Sequence) -> Optional[float]:
    """Mean of approved_at - created_at over decided requests."""
    spans = [
        (r.approved_at - r.created_at).total_seconds()
        for r in rows
        if getattr(r, "approved_at", None) is not None and r.created_at is not None
    ]
    if not spans:
        return None
    return round(sum(spans) / len(spans) / 3600, 2)


def count_by(rows: Iterable, attr: str) -> dict[str, int]:
    out: dict[str, int] = defaultdict(int)
    for r in rows:
        out[str(getattr(r, attr))] += 1
    return dict(out)


CSV_COLUMNS = ("user_id", "name", "email", "days_worked", "worked_hours", "sessions")


def attendance_csv(rows: Sequence[dict]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()
