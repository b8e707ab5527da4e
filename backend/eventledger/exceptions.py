class EventLedgerError(Exception):
    """Base exception for event registration and attendance rules."""


class EventValidationError(EventLedgerError):
    """Raised when candidate event fields break one or more rules."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid event data")


class EventNotFound(EventLedgerError):
    def __init__(self, event_id=None):
        self.event_id = event_id
        super().__init__(f"Event {event_id} not found" if event_id is not None else "Event not found")


class AttendanceEntryNotFound(EventLedgerError):
    def __init__(self, event_id, user_id):
        self.event_id = event_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not registered for event {event_id}")


class MalformedEventError(EventLedgerError, ValueError):
    """Raised when an in-memory event lacks the shape accounting needs."""


class RegistrationItemError(EventLedgerError):
    """Raised while building a single attendance entry inside a batch."""


class RegistrationRejected(EventLedgerError):
    """Raised when a single join request cannot be accepted."""


class AttendanceTransitionError(EventLedgerError):
    """Raised when an attendance entry cannot move to the requested state."""


class StoreError(EventLedgerError):
    def __init__(self, operation: str, event_id=None, cause: Exception | None = None):
        self.operation = operation
        self.event_id = event_id
        self.cause = cause
        detail = f"{operation} failed"
        if event_id is not None:
            detail += f" for event {event_id}"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail)


class SearchFailed(StoreError):
    def __init__(self, cause: Exception | None = None):
        super().__init__("event search", cause=cause)
