from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from witar.core.validation import sanitize_text, validate_department_name


class DepartmentIn(BaseModel):
    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    manager_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_department_name(v)

    @field_validator("description")
    @classmethod
    def clean_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_text(v) or None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    manager_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_department_name(v)

    @field_validator("description")
    @classmethod
    def clean_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_text(v) or None


class DepartmentOut(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    description: Optional[str] = None
    manager_id: Optional[UUID] = None
    status: str
    employee_count: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}
