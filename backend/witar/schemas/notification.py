from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: UUID
    company_id: UUID
    recipient_id: Optional[UUID] = None
    sender_id: Optional[UUID] = None
    type: str
    title: str
    message: str
    data: Dict[str, Any] = {}
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DeletedNotificationOut(NotificationOut):
    original_id: UUID
    deleted_by: Optional[UUID] = None
    deleted_at: datetime


class UnreadCountOut(BaseModel):
    unread: int
