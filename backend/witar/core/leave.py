# witar/core/leave.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

VACATION = "vacation"
PERMISSION = "permission"
SICK_LEAVE = "sick_leave"
OTHER = "other"

LEAVE_TYPES = (VACATION, PERMISSION, SICK_LEAVE, OTHER)


class LeaveValidationError(ValueError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class LeaveSpan:
    start_date: date
    end_date: date
    start_time: Optional[time]
    end_time: Optional[time]
    duration_days: Optional[int]
    duration_hours: Optional[float]


def compute_span(
    request_type: str,
    *,
    start_date: Optional[date],
    end_date: Optional[date],
    start_time: Optional[time],
    end_time: Optional[time],
) -> LeaveSpan:
    """
    Permissions are hour-based and confined to one day; every other type is
    a whole-day range, counted inclusively.
    """
    if request_type not in LEAVE_TYPES:
        raise LeaveValidationError("INVALID_REQUEST_TYPE", f"request_type must be one of: {', '.join(LEAVE_TYPES)}")

    if start_date is None:
        raise LeaveValidationError("START_DATE_REQUIRED", "start_date is required.")

    if request_type == PERMISSION:
        if start_time is None or end_time is None:
            raise LeaveValidationError("TIME_RANGE_REQUIRED", "A permission needs start_time and end_time.")
        if end_date is not None and end_date != start_date:
            raise LeaveValidationError("SINGLE_DAY_ONLY", "A permission must start and end on the same day.")
        if end_time <= start_time:
            raise LeaveValidationError("INVALID_TIME_RANGE", "end_time must be after start_time.")

        seconds = (datetime.combine(start_date, end_time) - datetime.combine(start_date, start_time)).total_seconds()
        return LeaveSpan(
            start_date=start_date,
            end_date=start_date,
            start_time=start_time,
            end_time=end_time,
            duration_days=None,
            duration_hours=round(seconds / 3600, 2),
        )

    if end_date is None:
        raise LeaveValidationError("END_DATE_REQUIRED", "end_date is required.")
    if end_date < start_date:
        raise LeaveValidationError("INVALID_DATE_RANGE", "end_date cannot be before start_date.")

    return LeaveSpan(
        start_date=start_date,
        end_date=end_date,
        start_time=None,
        end_time=None,
        duration_days=(end_date - start_date).days + 1,
        duration_hours=None,
    )


def overlaps(start: date, end: date, range_from: date, range_to: date) -> bool:
    return start <= range_to and end >= range_from
