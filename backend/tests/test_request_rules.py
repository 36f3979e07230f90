# tests/test_request_rules.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Optional

import pytest

from witar.core.edit_requests import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    ADD_ENTRY,
    DELETE_ENTRY,
    EDIT_TIME,
    EDIT_TYPE,
    EditRequestError,
    apply_update,
    approver_roles_for,
    can_decide,
    compute_change,
    validate_proposal,
)
from witar.core.leave import LeaveValidationError, compute_span, overlaps

WHEN = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@dataclass
class Entry:
    entry_type: str
    entry_time: datetime
    notes: Optional[str] = None


# ---------------------------------------------------------
# Time entry edit requests
# ---------------------------------------------------------
def test_add_entry_needs_time_and_type():
    with pytest.raises(EditRequestError) as exc:
        validate_proposal(ADD_ENTRY, time_entry_id=None, proposed_entry_time=WHEN, proposed_entry_type=None, reason="x")
    assert exc.value.code == "INVALID_EDIT_REQUEST"

    validate_proposal(
        ADD_ENTRY, time_entry_id=None, proposed_entry_time=WHEN, proposed_entry_type="clock_in", reason="forgot"
    )


def test_add_entry_cannot_reference_entry():
    with pytest.raises(EditRequestError):
        validate_proposal(
            ADD_ENTRY, time_entry_id="abc", proposed_entry_time=WHEN, proposed_entry_type="clock_in", reason="x"
        )


@pytest.mark.parametrize("request_type", [EDIT_TIME, EDIT_TYPE, DELETE_ENTRY])
def test_existing_entry_types_need_entry_id(request_type):
    with pytest.raises(EditRequestError) as exc:
        validate_proposal(
            request_type, time_entry_id=None, proposed_entry_time=WHEN, proposed_entry_type="clock_in", reason="x"
        )
    assert exc.value.code == "INVALID_EDIT_REQUEST"


def test_edit_time_needs_proposed_time():
    with pytest.raises(EditRequestError):
        validate_proposal(EDIT_TIME, time_entry_id="e", proposed_entry_time=None, proposed_entry_type=None, reason="x")


def test_edit_type_needs_valid_type():
    with pytest.raises(EditRequestError) as exc:
        validate_proposal(EDIT_TYPE, time_entry_id="e", proposed_entry_time=None, proposed_entry_type="nap", reason="x")
    assert exc.value.code == "INVALID_ENTRY_TYPE"


def test_reason_required():
    with pytest.raises(EditRequestError) as exc:
        validate_proposal(DELETE_ENTRY, time_entry_id="e", proposed_entry_time=None, proposed_entry_type=None, reason="  ")
    assert exc.value.code == "REASON_REQUIRED"


def test_unknown_request_type():
    with pytest.raises(EditRequestError) as exc:
        validate_proposal("merge", time_entry_id="e", proposed_entry_time=None, proposed_entry_type=None, reason="x")
    assert exc.value.code == "INVALID_REQUEST_TYPE"


def test_approver_roles():
    assert set(approver_roles_for("EMPLOYEE")) == {"OWNER", "ADMIN", "MANAGER"}
    assert set(approver_roles_for("MANAGER")) == {"OWNER", "ADMIN"}
    assert approver_roles_for("OWNER") == ()


def test_can_decide_matrix():
    assert can_decide(approver_role="OWNER", requester_role="ADMIN", same_user=False, requester_in_team=False)
    assert can_decide(approver_role="ADMIN", requester_role="MANAGER", same_user=False, requester_in_team=False)
    assert can_decide(approver_role="MANAGER", requester_role="EMPLOYEE", same_user=False, requester_in_team=True)
    assert not can_decide(approver_role="MANAGER", requester_role="EMPLOYEE", same_user=False, requester_in_team=False)
    assert not can_decide(approver_role="MANAGER", requester_role="MANAGER", same_user=False, requester_in_team=True)
    assert not can_decide(approver_role="EMPLOYEE", requester_role="EMPLOYEE", same_user=False, requester_in_team=True)
    assert not can_decide(approver_role="OWNER", requester_role="OWNER", same_user=True, requester_in_team=True)


def test_compute_change_edit_time_keeps_type():
    change = compute_change(EDIT_TIME, proposed_entry_time=WHEN, proposed_entry_type="clock_out", proposed_notes=None)
    assert change.action == ACTION_UPDATE
    assert change.entry_type is None

    entry = Entry("clock_in", datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc), notes="late")
    apply_update(change, entry)
    assert entry.entry_time == WHEN
    assert entry.entry_type == "clock_in"
    assert entry.notes == "late"


def test_compute_change_edit_type_with_notes():
    change = compute_change(EDIT_TYPE, proposed_entry_time=WHEN, proposed_entry_type="clock_out", proposed_notes="fix")
    entry = Entry("clock_in", datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))
    apply_update(change, entry)
    assert entry.entry_type == "clock_out"
    assert entry.entry_time.hour == 10
    assert entry.notes == "fix"


def test_compute_change_create_and_delete():
    assert compute_change(DELETE_ENTRY, proposed_entry_time=None, proposed_entry_type=None, proposed_notes=None).action == ACTION_DELETE

    create = compute_change(ADD_ENTRY, proposed_entry_time=WHEN, proposed_entry_type="clock_in", proposed_notes=None)
    assert create.action == ACTION_CREATE
    assert create.entry_time == WHEN
    with pytest.raises(ValueError):
        apply_update(create, Entry("clock_in", WHEN))


# ---------------------------------------------------------
# Leave requests
# ---------------------------------------------------------
def test_vacation_days_are_inclusive():
    span = compute_span("vacation", start_date=date(2026, 7, 1), end_date=date(2026, 7, 5), start_time=None, end_time=None)
    assert span.duration_days == 5
    assert span.duration_hours is None


def test_single_day_leave():
    span = compute_span("sick_leave", start_date=date(2026, 7, 1), end_date=date(2026, 7, 1), start_time=None, end_time=None)
    assert span.duration_days == 1


def test_permission_is_hour_based():
    span = compute_span(
        "permission", start_date=date(2026, 7, 1), end_date=None, start_time=time(9, 0), end_time=time(11, 30)
    )
    assert span.end_date == date(2026, 7, 1)
    assert span.duration_hours == 2.5
    assert span.duration_days is None


@pytest.mark.parametrize(
    "kwargs,code",
    [
        (dict(request_type="vacation", start_date=date(2026, 7, 5), end_date=date(2026, 7, 1)), "INVALID_DATE_RANGE"),
        (dict(request_type="vacation", start_date=date(2026, 7, 5), end_date=None), "END_DATE_REQUIRED"),
        (dict(request_type="other", start_date=None, end_date=date(2026, 7, 1)), "START_DATE_REQUIRED"),
        (dict(request_type="holiday", start_date=date(2026, 7, 1), end_date=date(2026, 7, 1)), "INVALID_REQUEST_TYPE"),
        (dict(request_type="permission", start_date=date(2026, 7, 1), end_date=None), "TIME_RANGE_REQUIRED"),
        (
            dict(
                request_type="permission",
                start_date=date(2026, 7, 1),
                end_date=date(2026, 7, 2),
                start_time=time(9),
                end_time=time(10),
            ),
            "SINGLE_DAY_ONLY",
        ),
        (
            dict(request_type="permission", start_date=date(2026, 7, 1), end_date=None, start_time=time(10), end_time=time(9)),
            "INVALID_TIME_RANGE",
        ),
    ],
)
def test_leave_validation_errors(kwargs, code):
    kwargs.setdefault("start_time", None)
    kwargs.setdefault("end_time", None)
    request_type = kwargs.pop("request_type")
    with pytest.raises(LeaveValidationError) as exc:
        compute_span(request_type, **kwargs)
    assert exc.value.code == code


def test_overlaps():
    assert overlaps(date(2026, 7, 1), date(2026, 7, 5), date(2026, 7, 5), date(2026, 7, 10))
    assert not overlaps(date(2026, 7, 1), date(2026, 7, 4), date(2026, 7, 5), date(2026, 7, 10))
