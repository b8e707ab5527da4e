"""Attendance accounting and event field validation.

Both entry points are pure: they read an already loaded event (or a raw
candidate mapping) and never touch the database.
"""

import math
import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from . import schemas
from .exceptions import EventNotFound, EventValidationError, MalformedEventError
from .models import AttendanceStatus

_TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def _capacity(event) -> int:
    value = getattr(event, "max_participants", None)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEventError(f"max_participants must be an integer, got {value!r}")
    if value < 0:
        raise MalformedEventError(f"max_participants must not be negative, got {value}")
    return value


def compute_attendance_stats(event) -> schemas.AttendanceStats:
    if event is None:
        raise EventNotFound()
    attendance = getattr(event, "attendance", None)
    if attendance is None or isinstance(attendance, (str, bytes)) or not isinstance(attendance, Sequence):
        raise MalformedEventError("event.attendance must be a loaded list of attendance entries")
    capacity = _capacity(event)

    approved = pending = disapproved = attended = 0
    for entry in attendance:
        is_approved = getattr(entry, "registration_approved", None) is True
        status = getattr(entry, "status", None)
        if is_approved:
            approved += 1
            if status == AttendanceStatus.attended:
                attended += 1
        if status == AttendanceStatus.pending:
            pending += 1
        elif status == AttendanceStatus.disapproved:
            disapproved += 1

    if capacity > 0:
        available_slots: int | str = capacity - approved
        is_full = approved >= capacity
    else:
        available_slots = schemas.UNLIMITED
        is_full = False

    return schemas.AttendanceStats(
        total=len(attendance),
        approved=approved,
        pending=pending,
        disapproved=disapproved,
        attended=attended,
        available_slots=available_slots,
        is_full=is_full,
    )


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _is_non_negative_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def _is_non_negative_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            return False
        value = int(text)
    if isinstance(value, float):
        if not value.is_integer():
            return False
        value = int(value)
    return isinstance(value, int) and value >= 0


def _check_time(candidate: Mapping, key: str, label: str, errors: list[str]) -> None:
    value = candidate.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        errors.append(f"{label} is required")
    elif not isinstance(value, str) or not _TIME_PATTERN.match(value.strip()):
        errors.append(f"Invalid {label.lower()} format (HH:MM)")


def validate_event_fields(candidate: Mapping) -> schemas.ValidationResult:
    """Check the mutable fields of an event before it is created or updated.

    Every violated rule contributes one message, so callers can show all
    problems at once instead of the first one.
    """
    errors: list[str] = []

    if _is_blank(candidate.get("title")):
        errors.append("Title is required")

    if _is_blank(candidate.get("location")):
        errors.append("Location is required")

    raw_date = candidate.get("date")
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        errors.append("Date is required")
    elif _parse_date(raw_date) is None:
        errors.append("Invalid date format")

    _check_time(candidate, "start_time", "Start time", errors)
    _check_time(candidate, "end_time", "End time", errors)

    hours = candidate.get("hours")
    if hours is not None and not _is_non_negative_number(hours):
        errors.append("Hours must be a non-negative number")

    max_participants = candidate.get("max_participants")
    if max_participants is not None and not _is_non_negative_integer(max_participants):
        errors.append("Max participants must be a non-negative integer")

    return schemas.ValidationResult(is_valid=not errors, errors=errors)


def ensure_valid_event_fields(candidate: Mapping) -> None:
    result = validate_event_fields(candidate)
    if not result.is_valid:
        raise EventValidationError(result.errors)
