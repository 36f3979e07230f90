from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from witar.core.time_clock import ClockSession, format_duration

EntryType = Literal["clock_in", "clock_out", "break_start", "break_end"]


class PunchIn(BaseModel):
    entry_type: EntryType
    location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    notes: Optional[str] = Field(default=None, max_length=500)


class TimeEntryOut(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID
    entry_type: str
    entry_time: datetime
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CompanyTimeEntryOut(TimeEntryOut):
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class ClockSessionOut(BaseModel):
    state: str
    started_at: Optional[datetime] = None
    break_started_at: Optional[datetime] = None
    paused_seconds: int
    elapsed_seconds: int
    elapsed: str
    last_entry_type: Optional[str] = None
    is_stale: bool
    allowed_entry_types: List[str]

    @classmethod
    def from_session(cls, s: ClockSession) -> "ClockSessionOut":
        return cls(
            state=s.state,
            started_at=s.started_at,
            break_started_at=s.break_started_at,
            paused_seconds=s.paused_seconds,
            elapsed_seconds=s.elapsed_seconds,
            elapsed=format_duration(s.elapsed_seconds),
            last_entry_type=s.last_entry_type,
            is_stale=s.is_stale,
            allowed_entry_types=list(s.allowed_entry_types),
        )


class PunchOut(BaseModel):
    entry: TimeEntryOut
    session: ClockSessionOut


class MyTimeEntriesOut(BaseModel):
    entries: List[TimeEntryOut]
    worked_seconds: int
    worked: str


class ActiveMemberOut(BaseModel):
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    session: ClockSessionOut
