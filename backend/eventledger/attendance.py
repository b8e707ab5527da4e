"""State changes on a single attendance entry.

Each function loads the event, changes one entry and saves the event back.
"""

from datetime import datetime, timezone
from typing import Optional

from . import models
from .exceptions import AttendanceEntryNotFound, AttendanceTransitionError
from .logging_utils import log_event
from .models import AttendanceStatus
from .store import EventStore


def _now() -> datetime:
    return datetime.now(timezone.utc)


def find_entry(event: models.Event, user_id: int) -> models.AttendanceEntry:
    for entry in event.attendance:
        if entry.user_id == user_id:
            return entry
    raise AttendanceEntryNotFound(event.id, user_id)


def _load(store: EventStore, event_id: int, user_id: int) -> tuple[models.Event, models.AttendanceEntry]:
    event = store.fetch_event(event_id)
    return event, find_entry(event, user_id)


def approve_registration(
    store: EventStore, event_id: int, user_id: int, *, actor_id: Optional[int] = None
) -> models.AttendanceEntry:
    event, entry = _load(store, event_id, user_id)
    if entry.status == AttendanceStatus.disapproved:
        raise AttendanceTransitionError("Cannot approve a disapproved registration.")
    entry.registration_approved = True
    entry.approved_by_id = actor_id
    entry.approved_at = _now()
    store.save_event(event)
    log_event("registration_approved", event_id=event_id, user_id=user_id, actor_user_id=actor_id)
    return entry


def disapprove_attendance(
    store: EventStore,
    event_id: int,
    user_id: int,
    *,
    reason: Optional[str],
    actor_id: Optional[int] = None,
) -> models.AttendanceEntry:
    if not reason or not reason.strip():
        raise AttendanceTransitionError("Reason for disapproval is required.")
    event, entry = _load(store, event_id, user_id)
    entry.status = AttendanceStatus.disapproved.value
    # a disapproved entry no longer holds a seat
    entry.registration_approved = False
    entry.reason = reason.strip()
    entry.approved_by_id = actor_id
    entry.approved_at = _now()
    store.save_event(event)
    log_event("attendance_disapproved", event_id=event_id, user_id=user_id, actor_user_id=actor_id)
    return entry


def record_time_in(store: EventStore, event_id: int, user_id: int) -> models.AttendanceEntry:
    event, entry = _load(store, event_id, user_id)
    if entry.time_in:
        raise AttendanceTransitionError("Already timed in.")
    entry.time_in = _now()
    store.save_event(event)
    log_event("attendance_time_in", event_id=event_id, user_id=user_id)
    return entry


def record_time_out(store: EventStore, event_id: int, user_id: int) -> models.AttendanceEntry:
    event, entry = _load(store, event_id, user_id)
    if not entry.time_in:
        raise AttendanceTransitionError("Must time in before timing out.")
    if entry.time_out:
        raise AttendanceTransitionError("Already timed out.")
    entry.time_out = _now()
    store.save_event(event)
    log_event("attendance_time_out", event_id=event_id, user_id=user_id)
    return entry


def submit_reflection(store: EventStore, event_id: int, user_id: int, reflection: str) -> models.AttendanceEntry:
    if not reflection or not reflection.strip():
        raise AttendanceTransitionError("Reflection must not be empty.")
    event, entry = _load(store, event_id, user_id)
    entry.reflection = reflection.strip()
    store.save_event(event)
    log_event("reflection_submitted", event_id=event_id, user_id=user_id)
    return entry


def mark_attended(store: EventStore, event_id: int, user_id: int) -> models.AttendanceEntry:
    event, entry = _load(store, event_id, user_id)
    if entry.registration_approved is not True:
        raise AttendanceTransitionError("Registration has not been approved.")
    entry.status = AttendanceStatus.attended.value
    store.save_event(event)
    log_event("attendance_marked", event_id=event_id, user_id=user_id)
    return entry


def approve_attendance(
    store: EventStore, event_id: int, user_id: int, *, actor_id: Optional[int] = None
) -> models.AttendanceEntry:
    """Approve completed attendance and credit the event's hours to the user."""
    event, entry = _load(store, event_id, user_id)
    if entry.status == AttendanceStatus.approved:
        raise AttendanceTransitionError("Attendance already approved.")
    if not entry.time_out:
        raise AttendanceTransitionError("Cannot approve attendance. Student has not timed out yet.")
    if not entry.reflection or not entry.reflection.strip():
        raise AttendanceTransitionError("Cannot approve attendance. Student has not uploaded a reflection yet.")

    entry.status = AttendanceStatus.approved.value
    entry.approved_by_id = actor_id
    entry.approved_at = _now()

    user = entry.user or store.fetch_user(user_id)
    if user is not None:
        user.community_service_hours = (user.community_service_hours or 0.0) + (event.hours or 0.0)

    store.save_event(event)
    log_event(
        "attendance_approved",
        event_id=event_id,
        user_id=user_id,
        actor_user_id=actor_id,
        hours=event.hours,
    )
    return entry
