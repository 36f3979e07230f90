from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class MemberOut(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    role: str
    permissions: List[str] = []
    department_id: Optional[UUID] = None
    department_name: Optional[str] = None
    supervisor_id: Optional[UUID] = None
    require_location: Optional[bool] = None
    is_active: bool
    created_at: datetime


class MemberUpdate(BaseModel):
    # Optional updates; send any subset
    role: Optional[str] = None
    department_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    require_location: Optional[bool] = None
    permissions: Optional[List[str]] = None


class MemberDeleteOut(BaseModel):
    employee_id: UUID
    user_id: UUID
    has_other_companies: bool
