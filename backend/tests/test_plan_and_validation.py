# tests/test_plan_and_validation.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from witar.api.deps.permissions import require_permissions
from witar.auth.permissions import PERM
from witar.core.config import settings
from witar.core.plan import (
    compute_company_status,
    format_invoice_number,
    monthly_price,
    parse_invoice_sequence,
    plan_info,
)
from witar.core.reports import attendance_by_user, attendance_csv, average_approval_hours, count_by
from witar.core.validation import (
    DocumentValidationError,
    safe_storage_name,
    sanitize_text,
    slugify,
    validate_department_name,
    validate_document_title,
    validate_http_url,
    validate_timezone,
    validate_upload,
)

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------
# Plan and company lifecycle
# ---------------------------------------------------------
def test_monthly_price_is_per_active_employee():
    assert monthly_price(4) == Decimal("6.00")
    assert monthly_price(0) == Decimal("0.00")


def test_monthly_price_is_capped_at_limit():
    assert monthly_price(settings.PLAN_EMPLOYEE_LIMIT + 10) == monthly_price(settings.PLAN_EMPLOYEE_LIMIT)


def test_plan_info_flags_exceeded_limit():
    info = plan_info(settings.PLAN_EMPLOYEE_LIMIT + 1)
    assert info["is_limit_exceeded"] is True
    assert info["status"] == "limit_exceeded"
    assert plan_info(3)["status"] == "active"


def test_invoice_numbers():
    assert format_invoice_number("2026-03", 7) == "WIT-202603-007"
    assert parse_invoice_sequence("WIT-202603-007") == 7
    assert parse_invoice_sequence(None) == 0
    assert parse_invoice_sequence("garbage") == 0


def test_company_in_trial():
    st = compute_company_status(
        created_at=NOW - timedelta(days=3), stored_status="trial", blocked_at=None, has_active_subscription=False, now=NOW
    )
    assert st.company_status == "trial"
    assert st.is_blocked is False
    assert st.days_remaining == settings.TRIAL_DAYS - 3


def test_company_blocked_after_trial():
    st = compute_company_status(
        created_at=NOW - timedelta(days=settings.TRIAL_DAYS),
        stored_status="trial",
        blocked_at=None,
        has_active_subscription=False,
        now=NOW,
    )
    assert st.company_status == "blocked"
    assert st.is_blocked is True
    assert st.days_remaining == 0


def test_subscription_unblocks_company():
    st = compute_company_status(
        created_at=NOW - timedelta(days=60),
        stored_status="blocked",
        blocked_at=NOW - timedelta(days=40),
        has_active_subscription=True,
        now=NOW,
    )
    assert st.company_status == "active"
    assert st.is_blocked is False


def test_manually_activated_company_stays_active():
    st = compute_company_status(
        created_at=NOW - timedelta(days=90), stored_status="active", blocked_at=None, has_active_subscription=False, now=NOW
    )
    assert st.company_status == "active"


# ---------------------------------------------------------
# Input validation
# ---------------------------------------------------------
def test_department_name_rules():
    assert validate_department_name("  Recursos   Humanos ") == "Recursos Humanos"
    with pytest.raises(ValueError):
        validate_department_name("R")
    with pytest.raises(ValueError):
        validate_department_name("Sales #1")


def test_document_title_is_escaped():
    assert validate_document_title("  Contract <b>2026</b> ") == "Contract &lt;b&gt;2026&lt;/b&gt;"
    with pytest.raises(DocumentValidationError) as exc:
        validate_document_title("ab")
    assert exc.value.code == "INVALID_TITLE"


def test_sanitize_text_none():
    assert sanitize_text(None) == ""


@pytest.mark.parametrize(
    "filename,ctype,size,code",
    [
        ("a.pdf", "application/pdf", 0, "EMPTY_FILE"),
        ("a.pdf", "application/pdf", 11, "FILE_TOO_LARGE"),
        ("a.exe", "application/x-msdownload", 5, "FILE_TYPE_NOT_ALLOWED"),
        ("a.png", "application/pdf", 5, "FILE_EXTENSION_NOT_ALLOWED"),
    ],
)
def test_upload_rejections(filename, ctype, size, code):
    with pytest.raises(DocumentValidationError) as exc:
        validate_upload(filename, ctype, size, max_bytes=10)
    assert exc.value.code == code


def test_upload_accepts_matching_extension():
    assert validate_upload("Payroll.PDF", "application/pdf", 5, max_bytes=10) == ".pdf"
    assert validate_upload("photo.jpeg", "image/jpeg; charset=binary", 5, max_bytes=10) == ".jpeg"


def test_storage_name_keeps_extension_only():
    name = safe_storage_name(".pdf")
    assert name.endswith(".pdf")
    assert "/" not in name
    assert safe_storage_name(".pdf") != name


def test_http_url_and_timezone():
    assert validate_http_url(" https://witar.es ") == "https://witar.es"
    assert validate_http_url("") is None
    with pytest.raises(ValueError):
        validate_http_url("ftp://witar.es")
    assert validate_timezone("") == "UTC"
    with pytest.raises(ValueError):
        validate_timezone("Nowhere/City")


def test_slugify():
    assert slugify("Café Lúa S.L.") == "caf-l-a-s-l"
    assert slugify("!!!") == "company"


# ---------------------------------------------------------
# Report aggregation
# ---------------------------------------------------------
@dataclass
class Punch:
    user_id: uuid.UUID
    entry_type: str
    entry_time: datetime


@dataclass
class Decided:
    created_at: datetime
    approved_at: datetime | None
    status: str = "approved"


def test_attendance_by_user():
    a, b = uuid.uuid4(), uuid.uuid4()
    day1 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
    day2 = day1 + timedelta(days=1)
    entries = [
        Punch(a, "clock_in", day1),
        Punch(a, "clock_out", day1 + timedelta(hours=8)),
        Punch(a, "clock_in", day2),
        Punch(a, "clock_out", day2 + timedelta(hours=4)),
        Punch(b, "clock_in", day1),
        Punch(b, "clock_out", day1 + timedelta(hours=2)),
    ]
    per_user, per_day = attendance_by_user(entries, now=day2 + timedelta(hours=10), tz=timezone.utc)

    assert per_user[a].days_worked == 2
    assert per_user[a].worked_hours == 12.0
    assert per_user[a].sessions == 2
    assert per_user[b].worked_hours == 2.0
    assert per_day[day1.date()] == 10 * 3600
    assert per_day[day2.date()] == 4 * 3600


def test_average_approval_hours_ignores_undecided():
    t = datetime(2026, 3, 2, tzinfo=timezone.utc)
    rows = [
        Decided(t, t + timedelta(hours=2)),
        Decided(t, t + timedelta(hours=4)),
        Decided(t, None, status="pending"),
    ]
    assert average_approval_hours(rows) == 3.0
    assert average_approval_hours([]) is None
    assert count_by(rows, "status") == {"approved": 2, "pending": 1}


def test_attendance_csv_header_and_rows():
    body = attendance_csv(
        [{"user_id": "u1", "name": "Ana", "email": "ana@example.com", "days_worked": 2, "worked_hours": 12.0, "sessions": 2}]
    )
    lines = body.strip().splitlines()
    assert lines[0] == "user_id,name,email,days_worked,worked_hours,sessions"
    assert lines[1] == "u1,Ana,ana@example.com,2,12.0,2"


# ---------------------------------------------------------
# Permission guard
# ---------------------------------------------------------
def test_require_permissions_refuses_unknown_strings():
    with pytest.raises(ValueError):
        require_permissions("time.teleport")
    with pytest.raises(ValueError):
        require_permissions()


@pytest.mark.asyncio
async def test_require_permissions_uses_extra_grants():
    member = SimpleNamespace(
        role="EMPLOYEE", permissions=["reports.read"], user_id=uuid.uuid4(), company_id=uuid.uuid4()
    )

    checker = require_permissions(PERM.REPORTS_READ)
    assert await checker(membership=member) is member

    checker = require_permissions([PERM.REPORTS_READ, PERM.BILLING_READ])
    with pytest.raises(HTTPException) as exc:
        await checker(membership=member)
    assert exc.value.status_code == 403
    assert exc.value.detail["missing"] == ["billing.read"]

    owner = SimpleNamespace(role="OWNER", permissions=[], user_id=uuid.uuid4(), company_id=uuid.uuid4())
    assert await checker(membership=owner) is owner
