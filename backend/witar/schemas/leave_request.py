from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

LeaveType = Literal["vacation", "permission", "sick_leave", "other"]


class LeaveRequestCreate(BaseModel):
    request_type: LeaveType
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: str = Field(max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)


class LeaveRequestOut(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID
    request_type: str
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    duration_days: Optional[int] = None
    duration_hours: Optional[float] = None
    reason: str
    notes: Optional[str] = None
    status: str
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    comments: Optional[str] = None
    created_at: datetime

    requester_email: Optional[str] = None
    requester_name: Optional[str] = None

    model_config = {"from_attributes": True}


class LeaveDecisionIn(BaseModel):
    comments: Optional[str] = Field(default=None, max_length=1000)


class LeaveStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
    by_type: Dict[str, int]
