from collections import Counter, defaultdict
from collections.abc import Iterable
from typing import Optional

from . import models, schemas
from .accounting import compute_attendance_stats
from .config import settings
from .exceptions import EventNotFound
from .models import AttendanceStatus, UserRole
from .store import EventStore


def compute_event_analytics(event) -> schemas.EventAnalytics:
    """Department and academic-year breakdown of one event's registrations.

    Expects `entry.user` to be loaded on each attendance entry. Entries whose
    user is missing are left out of the breakdowns but still counted in the
    totals.
    """
    if event is None:
        raise EventNotFound()
    stats = compute_attendance_stats(event)

    departments: Counter[str] = Counter()
    years: Counter[str] = Counter()
    for entry in event.attendance:
        user = getattr(entry, "user", None)
        if user is None:
            continue
        if user.department:
            departments[user.department] += 1
        if user.academic_year:
            years[str(user.academic_year)] += 1

    return schemas.EventAnalytics(
        event_id=event.id,
        title=event.title,
        total_registrations=len(event.attendance),
        attendance_stats=stats,
        department_breakdown=dict(departments),
        year_breakdown=dict(years),
    )


def load_event_analytics(store: EventStore, event_id: int) -> schemas.EventAnalytics:
    return compute_event_analytics(store.fetch_event(event_id, with_users=True))


def service_hours_by_user(events: Iterable[models.Event]) -> dict[int, float]:
    totals: dict[int, float] = defaultdict(float)
    for event in events:
        for entry in event.attendance:
            if entry.status == AttendanceStatus.approved:
                totals[entry.user_id] += event.hours or 0.0
    return dict(totals)


def students_meeting_hours(store: EventStore, threshold: Optional[float] = None) -> schemas.ServiceHoursReport:
    if threshold is None:
        threshold = settings.service_hours_threshold
    if threshold < 0:
        raise ValueError("threshold must not be negative")

    events = store.events_with_attendance_status(AttendanceStatus.approved.value)
    totals = service_hours_by_user(events)

    users: dict[int, models.User] = {}
    for event in events:
        for entry in event.attendance:
            if entry.status != AttendanceStatus.approved or entry.user is None:
                continue
            if entry.user.role == UserRole.student:
                users[entry.user_id] = entry.user

    students = [
        schemas.StudentServiceHours(
            user_id=user.id,
            email=user.email,
            name=user.name,
            department=user.department,
            academic_year=user.academic_year,
            total_hours=totals.get(user_id, 0.0),
        )
        for user_id, user in users.items()
        if totals.get(user_id, 0.0) >= threshold
    ]
    students.sort(key=lambda s: (-s.total_hours, s.user_id))
    return schemas.ServiceHoursReport(threshold=threshold, students=students)
