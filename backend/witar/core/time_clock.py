# witar/core/time_clock.py
"""
Clock session reconstruction.

Sessions are not stored. A user's punches (clock_in, break_start, break_end,
clock_out) are replayed in timestamp order to answer "what is this person
doing right now" and "how long did they work".
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Protocol, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

CLOCK_IN = "clock_in"
CLOCK_OUT = "clock_out"
BREAK_START = "break_start"
BREAK_END = "break_end"

ENTRY_TYPES = (CLOCK_IN, BREAK_START, BREAK_END, CLOCK_OUT)

STATE_OFF = "off"
STATE_WORKING = "working"
STATE_ON_BREAK = "on_break"

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATE_OFF: (CLOCK_IN,),
    STATE_WORKING: (BREAK_START, CLOCK_OUT),
    STATE_ON_BREAK: (BREAK_END, CLOCK_OUT),
}

# Equal timestamps replay in lifecycle order
_TIE_ORDER = {CLOCK_IN: 0, BREAK_START: 1, BREAK_END: 2, CLOCK_OUT: 3}


class Punch(Protocol):
    entry_type: str
    entry_time: datetime


class TimeClockError(Exception):
    def __init__(self, message: str, *, state: str, entry_type: str) -> None:
        super().__init__(message)
        self.message = message
        self.state = state
        self.entry_type = entry_type

    @property
    def allowed(self) -> tuple[str, ...]:
        return ALLOWED_TRANSITIONS.get(self.state, ())


@dataclass
class ClockSession:
    state: str = STATE_OFF
    started_at: Optional[datetime] = None
    break_started_at: Optional[datetime] = None
    paused_seconds: int = 0
    elapsed_seconds: int = 0
    last_entry_type: Optional[str] = None
    is_stale: bool = False

    @property
    def is_open(self) -> bool:
        return self.state != STATE_OFF

    @property
    def allowed_entry_types(self) -> tuple[str, ...]:
        return ALLOWED_TRANSITIONS[self.state]


@dataclass(frozen=True)
class WorkInterval:
    start: datetime
    end: datetime
    paused_seconds: int
    is_open: bool = False

    @property
    def worked_seconds(self) -> int:
        return max(0, int((self.end - self.start).total_seconds()) - self.paused_seconds)


@dataclass
class _ReplayState:
    state: str = STATE_OFF
    started_at: Optional[datetime] = None
    break_started_at: Optional[datetime] = None
    paused: float = 0.0
    last_entry_type: Optional[str] = None
    closed: list[WorkInterval] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_entries(entries: Iterable[Punch]) -> list[Punch]:
    return sorted(entries, key=lambda e: (e.entry_time, _TIE_ORDER.get(e.entry_type, 99)))


def _replay(entries: Iterable[Punch]) -> _ReplayState:
    rs = _ReplayState()
    for e in sort_entries(entries):
        kind, ts = e.entry_type, e.entry_time

        if kind == CLOCK_IN:
            # an unclosed earlier session is dropped
            rs.state, rs.started_at, rs.break_started_at, rs.paused = STATE_WORKING, ts, None, 0.0
        elif kind == BREAK_START and rs.state == STATE_WORKING:
            rs.state, rs.break_started_at = STATE_ON_BREAK, ts
        elif kind == BREAK_END and rs.state == STATE_ON_BREAK:
            rs.paused += (ts - rs.break_started_at).total_seconds()
            rs.state, rs.break_started_at = STATE_WORKING, None
        elif kind == CLOCK_OUT and rs.state != STATE_OFF:
            if rs.break_started_at is not None:
                rs.paused += (ts - rs.break_started_at).total_seconds()
            rs.closed.append(WorkInterval(start=rs.started_at, end=ts, paused_seconds=int(rs.paused)))
            rs.state, rs.started_at, rs.break_started_at, rs.paused = STATE_OFF, None, None, 0.0
        else:
            continue  # out of sequence

        rs.last_entry_type = kind
    return rs


def _is_stale(started_at: datetime, now: datetime, max_session_hours: Optional[float]) -> bool:
    if max_session_hours is None:
        return False
    return now - started_at > timedelta(hours=max_session_hours)


def reconstruct_session(
    entries: Iterable[Punch],
    now: Optional[datetime] = None,
    max_session_hours: Optional[float] = 24,
) -> ClockSession:
    """
    Current session of one user from their punches.

    elapsed = now - started_at - paused (closed breaks + the running one).
    A session open for longer than max_session_hours is reported as stale
    and treated as OFF, so a forgotten clock-out never blocks a new day.
    Pass max_session_hours=None to get the raw open session.
    """
    now = now or _utcnow()
    rs = _replay(entries)

    if rs.state == STATE_OFF:
        return ClockSession(last_entry_type=rs.last_entry_type)

    if _is_stale(rs.started_at, now, max_session_hours):
        return ClockSession(
            state=STATE_OFF,
            started_at=rs.started_at,
            last_entry_type=rs.last_entry_type,
            is_stale=True,
        )

    paused = rs.paused
    if rs.break_started_at is not None:
        paused += max(0.0, (now - rs.break_started_at).total_seconds())

    elapsed = (now - rs.started_at).total_seconds() - paused
    return ClockSession(
        state=rs.state,
        started_at=rs.started_at,
        break_started_at=rs.break_started_at,
        paused_seconds=int(paused),
        elapsed_seconds=max(0, int(elapsed)),
        last_entry_type=rs.last_entry_type,
    )


def summarize_sessions(
    entries: Iterable[Punch],
    now: Optional[datetime] = None,
    max_session_hours: Optional[float] = 24,
) -> list[WorkInterval]:
    """
    Closed work intervals, plus the open session cut at `now` unless it is stale.
    """
    now = now or _utcnow()
    rs = _replay(entries)
    intervals = list(rs.closed)

    if rs.state != STATE_OFF and not _is_stale(rs.started_at, now, max_session_hours):
        paused = rs.paused
        if rs.break_started_at is not None:
            paused += max(0.0, (now - rs.break_started_at).total_seconds())
        intervals.append(
            WorkInterval(start=rs.started_at, end=max(now, rs.started_at), paused_seconds=int(paused), is_open=True)
        )
    return intervals


def total_worked_seconds(intervals: Sequence[WorkInterval]) -> int:
    return sum(i.worked_seconds for i in intervals)


def worked_seconds_by_day(intervals: Sequence[WorkInterval], tz: tzinfo = timezone.utc) -> dict[date, int]:
    # a session counts for the local day it started on
    out: dict[date, int] = {}
    for i in intervals:
        d = i.start.astimezone(tz).date()
        out[d] = out.get(d, 0) + i.worked_seconds
    return out


def validate_transition(session: ClockSession, entry_type: str) -> None:
    if entry_type not in ENTRY_TYPES:
        raise TimeClockError(f"Unknown entry type: {entry_type}", state=session.state, entry_type=entry_type)

    if entry_type not in session.allowed_entry_types:
        raise TimeClockError(
            f"Cannot register {entry_type} while {session.state}",
            state=session.state,
            entry_type=entry_type,
        )


def format_duration(seconds: int | float) -> str:
    """HH:MM:SS; hours are not wrapped at 24."""
    total = max(0, int(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def zone_or_utc(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def local_day_bounds(
    date_from: Optional[date],
    date_to: Optional[date],
    tz: tzinfo,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """[start of date_from, start of the day after date_to) in UTC, local days in `tz`."""
    start = end = None
    if date_from is not None:
        start = datetime.combine(date_from, time.min, tzinfo=tz).astimezone(timezone.utc)
    if date_to is not None:
        end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
    return start, end
