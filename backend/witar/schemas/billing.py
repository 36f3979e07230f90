from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

InvoiceStatus = Literal["pending", "paid", "cancelled", "overdue"]


class PlanOut(BaseModel):
    name: str
    type: str
    price_per_employee: float
    currency: str
    employee_limit: int
    current_employees: int
    monthly_price: float
    is_limit_exceeded: bool
    status: str
    features: List[str]


class SubscriptionOut(BaseModel):
    id: UUID
    company_id: UUID
    plan_type: str
    status: str
    employee_count: int
    price_per_employee: float
    monthly_price: float
    currency: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class InvoiceCreate(BaseModel):
    period: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="Billed month, YYYY-MM")
    status: InvoiceStatus = "pending"


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceOut(BaseModel):
    id: UUID
    company_id: UUID
    subscription_id: Optional[UUID] = None
    invoice_number: str
    period: str
    employee_count: int
    amount: float
    currency: str
    status: str
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BillingOverview(BaseModel):
    employee_count: int
    plan: PlanOut
    subscription: Optional[SubscriptionOut] = None
    invoices: List[InvoiceOut]


class BillingStats(BaseModel):
    total_invoices: int
    total_amount: float
    paid_amount: float
    pending_amount: float
    average_monthly_amount: float
