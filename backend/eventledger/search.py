from collections.abc import Mapping
from typing import Optional, Union

from . import models, schemas
from .config import settings
from .exceptions import SearchFailed, StoreError
from .logging_utils import log_warning
from .queries import build_event_query, coerce_role, event_projection, response_model_for
from .store import EventStore


def _field_value(event: models.Event, name: str):
    if name == "departments":
        return sorted(event.department_names)
    if name == "attendance":
        return [schemas.AttendanceEntryResponse.model_validate(entry) for entry in event.attendance]
    return getattr(event, name)


def serialize_event(event: models.Event, role) -> schemas.EventResponse:
    model = response_model_for(role)
    return model(**{name: _field_value(event, name) for name in event_projection(role)})


def search_events(
    store: EventStore,
    term: Optional[str] = None,
    filters: Union[schemas.SearchFilters, Mapping, None] = None,
    role=models.UserRole.public,
    department: Optional[str] = None,
) -> list[schemas.EventResponse]:
    """Return at most `search_result_limit` events the caller may see, newest first."""
    role = coerce_role(role)
    if filters is None:
        filters = schemas.SearchFilters()
    elif not isinstance(filters, schemas.SearchFilters):
        filters = schemas.SearchFilters.model_validate(filters)

    event_filter = build_event_query(role, department)
    if term and term.strip():
        event_filter = event_filter.narrow(term=term.strip())
    narrowing = filters.model_dump(exclude_none=True)
    if narrowing:
        event_filter = event_filter.narrow(**narrowing)

    try:
        events = store.find_events(event_filter, limit=settings.search_result_limit)
    except StoreError as exc:
        log_warning("event_search_failed", role=role.value, error=str(exc.cause or exc))
        raise SearchFailed(exc.cause or exc) from exc

    return [serialize_event(event, role) for event in events]
