from datetime import date
from typing import Optional
from contextlib import asynccontextmanager
import logging
from pathlib import Path

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import analytics, attendance, auth, models, registrations, schemas
from .accounting import compute_attendance_stats, ensure_valid_event_fields, validate_event_fields
from .config import settings
from .database import engine, get_db
from .exceptions import (
    AttendanceEntryNotFound,
    AttendanceTransitionError,
    EventLedgerError,
    EventNotFound,
    EventValidationError,
    MalformedEventError,
    RegistrationRejected,
    SearchFailed,
    StoreError,
)
from .logging_utils import configure_logging, RequestIdMiddleware, log_event, log_warning
from .queries import build_event_query
from .search import search_events
from .store import EventStore

configure_logging()


def _run_migrations():
    """Run Alembic migrations to latest head. Controlled via settings.auto_run_migrations."""
    try:
        from alembic import command
        from alembic.config import Config
        base_dir = Path(__file__).resolve().parent.parent
        alembic_ini = base_dir / 'alembic.ini'
        if not alembic_ini.exists():
            logging.warning('alembic.ini not found; skipping migrations')
            return
        cfg = Config(str(alembic_ini))
        cfg.set_main_option('script_location', str(base_dir / 'alembic'))
        command.upgrade(cfg, 'head')
        logging.info('Migrations applied to head')
    except Exception:
        logging.exception('Failed to run migrations on startup')


def _check_configuration():
    if not settings.database_url:
        raise RuntimeError('DATABASE_URL is required')
    if not settings.secret_key:
        raise RuntimeError('SECRET_KEY is required')


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _check_configuration()
    if settings.auto_run_migrations:
        _run_migrations()
    elif settings.auto_create_tables:
        models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Event Ledger API", version="1.0.0", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(db: Session = Depends(get_db)) -> EventStore:
    return EventStore(db)


def _error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}, "detail": message},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    code = f"http_{exc.status_code}"
    message = exc.detail if isinstance(exc.detail, str) else "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": code, "message": message}, "detail": message},
        headers=getattr(exc, "headers", None),
    )


_DOMAIN_ERRORS: dict[type, tuple[int, str]] = {
    EventNotFound: (status.HTTP_404_NOT_FOUND, "event_not_found"),
    AttendanceEntryNotFound: (status.HTTP_404_NOT_FOUND, "attendance_not_found"),
    RegistrationRejected: (status.HTTP_400_BAD_REQUEST, "registration_rejected"),
    AttendanceTransitionError: (status.HTTP_400_BAD_REQUEST, "attendance_transition_invalid"),
    MalformedEventError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "malformed_event"),
    SearchFailed: (status.HTTP_503_SERVICE_UNAVAILABLE, "search_failed"),
    StoreError: (status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable"),
}

_OPAQUE_MESSAGES = {
    "search_failed": "Event search failed. Please try again later.",
    "store_unavailable": "Event storage is temporarily unavailable.",
    "malformed_event": "Event data is inconsistent.",
}


@app.exception_handler(EventValidationError)
async def validation_error_handler(request: Request, exc: EventValidationError):
    return _error_response(
        422,
        "event_invalid",
        "Event data is invalid.",
        errors=exc.errors,
    )


@app.exception_handler(EventLedgerError)
async def domain_error_handler(request: Request, exc: EventLedgerError):
    for klass in type(exc).__mro__:
        if klass in _DOMAIN_ERRORS:
            status_code, code = _DOMAIN_ERRORS[klass]
            break
    else:
        status_code, code = status.HTTP_400_BAD_REQUEST, "event_ledger_error"
    if status_code >= 500:
        log_warning("request_failed", path=request.url.path, code=code, error=str(exc))
    return _error_response(status_code, code, _OPAQUE_MESSAGES.get(code, str(exc)))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "internal_error", "message": "An unexpected error occurred."}},
    )


def _ensure_registrations_enabled() -> None:
    if getattr(settings, "maintenance_mode_registrations_disabled", False):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registrations are temporarily disabled. Please try again later.",
        )


def _visible_event(store: EventStore, event_id: int, caller: auth.Caller) -> models.Event:
    event = store.fetch_event(event_id)
    if not build_event_query(caller.role, caller.department).matches(event):
        raise EventNotFound(event_id)
    return event


def _ensure_self(caller: auth.Caller, user_id: int, action: str) -> None:
    if caller.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Can only {action} for yourself.")


def _entry_status(event_id: int, entry: models.AttendanceEntry) -> schemas.RegistrationStatusResponse:
    return schemas.RegistrationStatusResponse(
        event_id=event_id,
        user_id=entry.user_id,
        status=entry.status,
        registration_approved=bool(entry.registration_approved),
    )


@app.get("/")
def read_root():
    return {"message": "Hello from Event Ledger API!"}


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception:
        raise HTTPException(status_code=503, detail="Database unavailable")


@app.get("/api/events/search", response_model=None)
def search(
    term: Optional[str] = None,
    department: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.get_optional_caller),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="`date_from` must not be after `date_to`.")
    filters = schemas.SearchFilters(department=department, status=status_filter, date_from=date_from, date_to=date_to)
    return search_events(store, term, filters, caller.role, caller.department)


@app.post("/api/events/validate", response_model=schemas.ValidationResult)
def validate_event(
    candidate: dict = Body(...),
    strict: bool = False,
    caller: auth.Caller = Depends(auth.require_staff),
):
    if strict:
        ensure_valid_event_fields(candidate)
    return validate_event_fields(candidate)


@app.get("/api/events/{event_id}/attendance-stats", response_model=schemas.AttendanceStats)
def event_attendance_stats(
    event_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.get_optional_caller),
):
    return compute_attendance_stats(_visible_event(store, event_id, caller))


@app.get("/api/events/{event_id}/analytics", response_model=schemas.EventAnalytics)
def event_analytics(
    event_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _visible_event(store, event_id, caller)
    return analytics.load_event_analytics(store, event_id)


@app.post("/api/events/{event_id}/registrations/batch", response_model=schemas.BatchRegistrationResponse)
def batch_register(
    event_id: int,
    payload: schemas.BatchRegistrationRequest,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _ensure_registrations_enabled()
    _visible_event(store, event_id, caller)
    results = registrations.apply_registrations(store, event_id, payload.registrations)
    return schemas.BatchRegistrationResponse(
        event_id=event_id,
        registered=sum(1 for r in results if r.status == "success"),
        already_registered=sum(1 for r in results if r.status == "already_registered"),
        failed=sum(1 for r in results if r.status == "error"),
        results=results,
    )


@app.post(
    "/api/events/{event_id}/register",
    response_model=schemas.RegistrationStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_for_event(
    event_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_student),
):
    _ensure_registrations_enabled()
    _visible_event(store, event_id, caller)
    registrations.register_user(store, event_id, caller.user_id)
    event = store.fetch_event(event_id)
    log_event("event_registered", event_id=event_id, user_id=caller.user_id)
    return _entry_status(event_id, attendance.find_entry(event, caller.user_id))


@app.post(
    "/api/events/{event_id}/attendance/{user_id}/approve-registration",
    response_model=schemas.RegistrationStatusResponse,
)
def approve_registration(
    event_id: int,
    user_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _visible_event(store, event_id, caller)
    entry = attendance.approve_registration(store, event_id, user_id, actor_id=caller.user_id)
    return _entry_status(event_id, entry)


@app.post("/api/events/{event_id}/attendance/{user_id}/disapprove", response_model=schemas.RegistrationStatusResponse)
def disapprove_attendance(
    event_id: int,
    user_id: int,
    payload: schemas.DisapprovalRequest,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _visible_event(store, event_id, caller)
    entry = attendance.disapprove_attendance(
        store, event_id, user_id, reason=payload.reason, actor_id=caller.user_id
    )
    return _entry_status(event_id, entry)


@app.post("/api/events/{event_id}/attendance/{user_id}/approve", response_model=schemas.RegistrationStatusResponse)
def approve_attendance(
    event_id: int,
    user_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _visible_event(store, event_id, caller)
    entry = attendance.approve_attendance(store, event_id, user_id, actor_id=caller.user_id)
    return _entry_status(event_id, entry)


@app.post("/api/events/{event_id}/attendance/{user_id}/attended", response_model=schemas.RegistrationStatusResponse)
def mark_attended(
    event_id: int,
    user_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_staff),
):
    _visible_event(store, event_id, caller)
    return _entry_status(event_id, attendance.mark_attended(store, event_id, user_id))


@app.post("/api/events/{event_id}/attendance/{user_id}/time-in", response_model=schemas.RegistrationStatusResponse)
def time_in(
    event_id: int,
    user_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.get_current_caller),
):
    _ensure_self(caller, user_id, "time in")
    return _entry_status(event_id, attendance.record_time_in(store, event_id, user_id))


@app.post("/api/events/{event_id}/attendance/{user_id}/time-out", response_model=schemas.RegistrationStatusResponse)
def time_out(
    event_id: int,
    user_id: int,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.get_current_caller),
):
    _ensure_self(caller, user_id, "time out")
    return _entry_status(event_id, attendance.record_time_out(store, event_id, user_id))


@app.post("/api/events/{event_id}/attendance/{user_id}/reflection", response_model=schemas.RegistrationStatusResponse)
def submit_reflection(
    event_id: int,
    user_id: int,
    payload: schemas.ReflectionRequest,
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.get_current_caller),
):
    _ensure_self(caller, user_id, "submit a reflection")
    return _entry_status(event_id, attendance.submit_reflection(store, event_id, user_id, payload.reflection))


@app.get("/api/admin/reports/service-hours", response_model=schemas.ServiceHoursReport)
def service_hours_report(
    threshold: Optional[float] = Query(None, ge=0),
    store: EventStore = Depends(get_store),
    caller: auth.Caller = Depends(auth.require_admin),
):
    return analytics.students_meeting_hours(store, threshold)
