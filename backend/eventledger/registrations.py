"""Batch registration of users against one event's attendance list."""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from . import models, schemas
from .accounting import compute_attendance_stats
from .config import settings
from .exceptions import RegistrationItemError, RegistrationRejected
from .logging_utils import log_event
from .models import AttendanceStatus, EventStatus
from .store import EventStore

logger = logging.getLogger(__name__)


def _chunks(items: list, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _raw_user_id(raw: Any):
    if isinstance(raw, schemas.RegistrationRequest):
        return raw.user_id
    if isinstance(raw, Mapping):
        return raw.get("user_id")
    return getattr(raw, "user_id", None)


def _coerce_request(raw: Any) -> schemas.RegistrationRequest:
    if isinstance(raw, schemas.RegistrationRequest):
        return raw
    if isinstance(raw, Mapping):
        return schemas.RegistrationRequest.model_validate(raw)
    return schemas.RegistrationRequest.model_validate(raw, from_attributes=True)


def _batch_user_ids(batch: list) -> set[int]:
    user_ids = set()
    for raw in batch:
        try:
            user_id = _coerce_request(raw).user_id
        except ValidationError:
            # reported again, per item, by _apply_one
            continue
        if user_id is not None:
            user_ids.add(user_id)
    return user_ids


def _build_entry(request: schemas.RegistrationRequest, now: datetime) -> models.AttendanceEntry:
    status = request.status or AttendanceStatus.pending.value
    try:
        status = AttendanceStatus(status).value
    except ValueError:
        raise RegistrationItemError(f"Unknown attendance status {status!r}") from None
    return models.AttendanceEntry(
        user_id=request.user_id,
        status=status,
        registration_approved=bool(request.registration_approved),
        registered_at=now,
    )


def _outcome(user_id, status: schemas.OutcomeStatus, message: str) -> schemas.RegistrationOutcome:
    return schemas.RegistrationOutcome(user_id=user_id, status=status, message=message)


def _invalid_fields_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "request"
        parts.append(f"{field} {error.get('input')!r}")
    return "Invalid " + ", ".join(parts)


def _apply_one(
    event: models.Event,
    registered: set[int],
    users: dict[int, models.User],
    raw: Any,
) -> schemas.RegistrationOutcome:
    user_id = _raw_user_id(raw)
    try:
        request = _coerce_request(raw)
        user_id = request.user_id
        if user_id is None:
            raise RegistrationItemError("user_id is required")
        if user_id in registered:
            return _outcome(user_id, "already_registered", "User already registered")
        if user_id not in users:
            raise RegistrationItemError(f"User {user_id} not found")
        event.attendance.append(_build_entry(request, datetime.now(timezone.utc)))
        registered.add(user_id)
        return _outcome(user_id, "success", "Registration added successfully")
    except ValidationError as exc:
        return _outcome(user_id if isinstance(user_id, int) else None, "error", _invalid_fields_message(exc))
    except Exception as exc:  # noqa: BLE001
        logger.debug("registration item failed", exc_info=True)
        return _outcome(user_id if isinstance(user_id, int) else None, "error", str(exc))


def apply_registrations(
    store: EventStore,
    event_id: int,
    requests: Iterable[Any],
    *,
    batch_size: int | None = None,
) -> list[schemas.RegistrationOutcome]:
    """Append registrations to an event and persist it once.

    Requests run in input order, `batch_size` at a time; each batch resolves
    its users with one lookup. A failing request only marks its own outcome as
    `error`. Capacity is not checked here: callers that need a hard cap look
    at `compute_attendance_stats(event).is_full` first.
    """
    size = batch_size or settings.registration_batch_size
    if size < 1:
        raise ValueError("batch_size must be at least 1")

    event = store.fetch_event(event_id)
    registered = {entry.user_id for entry in event.attendance}
    pending = list(requests)
    outcomes: list[schemas.RegistrationOutcome] = []

    for batch in _chunks(pending, size):
        users = store.fetch_users(_batch_user_ids(batch))
        outcomes.extend(_apply_one(event, registered, users, raw) for raw in batch)

    store.save_event(event)

    counts = {status: 0 for status in ("success", "already_registered", "error")}
    for outcome in outcomes:
        counts[outcome.status] += 1
    log_event(
        "registrations_applied",
        event_id=event_id,
        requested=len(pending),
        registered=counts["success"],
        already_registered=counts["already_registered"],
        failed=counts["error"],
    )
    return outcomes


def register_user(store: EventStore, event_id: int, user_id: int) -> schemas.RegistrationOutcome:
    event = store.fetch_event(event_id)
    if event.status != EventStatus.active:
        raise RegistrationRejected("Event is not active.")
    if any(entry.user_id == user_id for entry in event.attendance):
        raise RegistrationRejected("Already registered for this event.")
    if compute_attendance_stats(event).is_full:
        raise RegistrationRejected("Event is full.")

    outcome = apply_registrations(store, event_id, [schemas.RegistrationRequest(user_id=user_id)])[0]
    if outcome.status != "success":
        raise RegistrationRejected(outcome.message)
    return outcome
