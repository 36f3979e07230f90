from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from witar.core.validation import validate_http_url, validate_timezone


class CompanyCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)

    accepted_terms: bool = Field(
        ...,
        description="Must be true to register a company (ToS acceptance is required).",
    )
    notifications_opt_in: Optional[bool] = Field(
        default=None,
        description="Optional: whether the owner opts in to notifications.",
    )
    timezone: Optional[str] = Field(default=None, max_length=64)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if len(v) < 2:
            raise ValueError("Company name must have at least 2 characters")
        return v

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_timezone(v)


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    website: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)
    email: Optional[EmailStr] = None
    industry: Optional[str] = Field(default=None, max_length=100)
    size: Optional[str] = Field(default=None, max_length=50)

    @field_validator("website")
    @classmethod
    def check_website(cls, v: Optional[str]) -> Optional[str]:
        return validate_http_url(v)


class CompanyOut(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    status: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CompanySettingsIn(BaseModel):
    working_hours_per_day: float = Field(default=8.0, gt=0, le=24)
    working_days_per_week: int = Field(default=5, ge=1, le=7)
    timezone: str = Field(default="UTC", max_length=64)

    require_location: bool = False
    allow_overtime: bool = True
    auto_approve_requests: bool = False
    max_vacation_days: int = Field(default=20, ge=0, le=365)

    notify_time_clock: bool = True
    notify_requests: bool = True
    notify_employees: bool = True
    notify_documents: bool = True
    notify_invitations: bool = True
    notify_system_warnings: bool = True

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        return validate_timezone(v)


class CompanySettingsOut(CompanySettingsIn):
    company_id: UUID
    updated_at: datetime

    model_config = {"from_attributes": True}


class CompanyStatusOut(BaseModel):
    company_status: str
    is_blocked: bool
    days_remaining: int
    days_since_creation: int
    has_active_subscription: bool


class MembershipOut(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID
    role: str
    permissions: List[str] = []
    department_id: Optional[UUID] = None
    supervisor_id: Optional[UUID] = None
    require_location: Optional[bool] = None
    is_active: bool
    accepted_terms: bool
    notifications_opt_in: Optional[bool] = None
    created_at: datetime

    model_config = {"from_attributes": True}
