from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class AttendanceRow(BaseModel):
    user_id: UUID
    name: Optional[str] = None
    email: str
    days_worked: int
    worked_hours: float
    sessions: int


class DailyTotal(BaseModel):
    date: date
    worked_hours: float


class AttendanceReport(BaseModel):
    date_from: date
    date_to: date
    employees: List[AttendanceRow]
    daily_totals: List[DailyTotal]
    total_hours: float


class RequestSummary(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    average_approval_hours: Optional[float] = None


class RequestsReport(BaseModel):
    leave_requests: RequestSummary
    time_entry_edit_requests: RequestSummary
