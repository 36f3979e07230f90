from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from witar.core.security import MIN_PASSWORD_LENGTH


class InvitationCreate(BaseModel):
    email: EmailStr
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role: str = Field(default="EMPLOYEE", description="ADMIN, MANAGER or EMPLOYEE")
    department_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = Field(default=None, description="user id of a manager in this company")
    temporary_password: Optional[str] = Field(default=None, min_length=MIN_PASSWORD_LENGTH, max_length=200)


class InvitationOut(BaseModel):
    id: UUID
    company_id: UUID
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    department_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    token: str
    status: str
    has_temporary_password: bool = False
    invited_by: Optional[UUID] = None
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_by_user_id: Optional[UUID] = None
    created_at: datetime
    email_sent: Optional[bool] = None

    model_config = {"from_attributes": True}


class InvitationLookupOut(BaseModel):
    company_id: UUID
    company_name: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    status: str
    expires_at: datetime
    has_temporary_password: bool


class AcceptInvitation(BaseModel):
    token: str = Field(..., description="Invitation token")
    accept_tos: bool = Field(default=True, description="Must be true to accept the invitation")
    accept_notifications: Optional[bool] = Field(default=None, description="Optional notifications opt-in/out")
