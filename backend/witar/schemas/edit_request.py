from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from witar.schemas.time_entry import EntryType

RequestType = Literal["edit_time", "edit_type", "delete_entry", "add_entry"]


class EditRequestCreate(BaseModel):
    request_type: RequestType
    time_entry_id: Optional[UUID] = None
    proposed_entry_time: Optional[datetime] = None
    proposed_entry_type: Optional[EntryType] = None
    proposed_notes: Optional[str] = Field(default=None, max_length=500)
    reason: str = Field(max_length=1000)


class EditRequestOut(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID
    time_entry_id: Optional[UUID] = None
    request_type: str

    current_entry_type: Optional[str] = None
    current_entry_time: Optional[datetime] = None
    current_notes: Optional[str] = None

    proposed_entry_type: Optional[str] = None
    proposed_entry_time: Optional[datetime] = None
    proposed_notes: Optional[str] = None

    reason: str
    status: str
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    created_at: datetime

    requester_email: Optional[str] = None
    requester_name: Optional[str] = None
    approver_email: Optional[str] = None

    model_config = {"from_attributes": True}


class DecisionIn(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=1000)


class RequestStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
