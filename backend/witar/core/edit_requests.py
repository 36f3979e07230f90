# witar/core/edit_requests.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from witar.core.roles import CompanyRole
from witar.core.time_clock import ENTRY_TYPES

EDIT_TIME = "edit_time"
EDIT_TYPE = "edit_type"
DELETE_ENTRY = "delete_entry"
ADD_ENTRY = "add_entry"

REQUEST_TYPES = (EDIT_TIME, EDIT_TYPE, DELETE_ENTRY, ADD_ENTRY)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_CREATE = "create"


class EditRequestError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class EntryChange:
    """What approving a request does to time_entries."""

    action: str
    entry_type: Optional[str] = None
    entry_time: Optional[datetime] = None
    notes: Optional[str] = None
    set_notes: bool = False


def validate_proposal(
    request_type: str,
    *,
    time_entry_id,
    proposed_entry_time: Optional[datetime],
    proposed_entry_type: Optional[str],
    reason: Optional[str],
) -> None:
    if request_type not in REQUEST_TYPES:
        raise EditRequestError("INVALID_REQUEST_TYPE", f"request_type must be one of: {', '.join(REQUEST_TYPES)}")

    if not (reason or "").strip():
        raise EditRequestError("REASON_REQUIRED", "A reason is required.")

    if proposed_entry_type is not None and proposed_entry_type not in ENTRY_TYPES:
        raise EditRequestError("INVALID_ENTRY_TYPE", f"proposed_entry_type must be one of: {', '.join(ENTRY_TYPES)}")

    if request_type == ADD_ENTRY:
        if time_entry_id is not None:
            raise EditRequestError("INVALID_EDIT_REQUEST", "add_entry cannot reference an existing entry.")
        if proposed_entry_time is None or proposed_entry_type is None:
            raise EditRequestError(
                "INVALID_EDIT_REQUEST", "add_entry requires proposed_entry_time and proposed_entry_type."
            )
        return

    if time_entry_id is None:
        raise EditRequestError("INVALID_EDIT_REQUEST", f"{request_type} requires time_entry_id.")

    if request_type == EDIT_TIME and proposed_entry_time is None:
        raise EditRequestError("INVALID_EDIT_REQUEST", "edit_time requires proposed_entry_time.")

    if request_type == EDIT_TYPE and proposed_entry_type is None:
        raise EditRequestError("INVALID_EDIT_REQUEST", "edit_type requires proposed_entry_type.")


def approver_roles_for(requester_role: str) -> tuple[str, ...]:
    """Roles notified when a member of `requester_role` files a request."""
    role = (requester_role or "").upper()
    if role == CompanyRole.EMPLOYEE.value:
        return (CompanyRole.OWNER.value, CompanyRole.ADMIN.value, CompanyRole.MANAGER.value)
    if role == CompanyRole.MANAGER.value:
        return (CompanyRole.OWNER.value, CompanyRole.ADMIN.value)
    return ()


def can_decide(
    *,
    approver_role: str,
    requester_role: str,
    same_user: bool,
    requester_in_team: bool,
) -> bool:
    if same_user:
        return False
    role = (approver_role or "").upper()
    if role in (CompanyRole.OWNER.value, CompanyRole.ADMIN.value):
        return True
    if role == CompanyRole.MANAGER.value:
        return (requester_role or "").upper() == CompanyRole.EMPLOYEE.value and requester_in_team
    return False


def compute_change(
    request_type: str,
    *,
    proposed_entry_time: Optional[datetime],
    proposed_entry_type: Optional[str],
    proposed_notes: Optional[str],
) -> EntryChange:
    if request_type == DELETE_ENTRY:
        return EntryChange(action=ACTION_DELETE)

    if request_type == ADD_ENTRY:
        return EntryChange(
            action=ACTION_CREATE,
            entry_type=proposed_entry_type,
            entry_time=proposed_entry_time,
            notes=proposed_notes,
            set_notes=proposed_notes is not None,
        )

    return EntryChange(
        action=ACTION_UPDATE,
        entry_type=proposed_entry_type if request_type == EDIT_TYPE else None,
        entry_time=proposed_entry_time if request_type == EDIT_TIME else None,
        notes=proposed_notes,
        set_notes=proposed_notes is not None,
    )


def apply_update(change: EntryChange, entry) -> None:
    """Mutate an existing time entry in place for an ACTION_UPDATE change."""
    if change.action != ACTION_UPDATE:
        raise ValueError(f"apply_update() cannot handle action={change.action!r}")
    if change.entry_time is not None:
        entry.entry_time = change.entry_time
    if change.entry_type is not None:
        entry.entry_type = change.entry_type
    if change.set_notes:
        entry.notes = change.notes
