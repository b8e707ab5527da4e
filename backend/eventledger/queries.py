"""Role-scoped event filters.

A filter is a plain description of what a caller may see. It can be checked
against an in-memory event (`matches`) or rendered into SQLAlchemy criteria
(`to_criteria`) for the store.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Optional

from sqlalchemy import func, or_

from . import models, schemas
from .models import EventStatus, UserRole

SEARCHABLE_FIELDS = ("title", "description", "location")


@dataclass(frozen=True)
class DepartmentScope:
    department: Optional[str]

    def covers(self, event) -> bool:
        if event.department == self.department:
            return True
        if getattr(event, "is_for_all_departments", False) is True:
            return True
        return self.department is not None and self.department in event.department_names

    def to_criterion(self):
        Event = models.Event
        if self.department is None:
            return or_(Event.department.is_(None), Event.is_for_all_departments.is_(True))
        return or_(
            Event.department == self.department,
            Event.is_for_all_departments.is_(True),
            Event.departments.any(models.Department.name == self.department),
        )


@dataclass(frozen=True)
class EventFilter:
    excluded_status: Optional[str] = None
    visible_to_students: Optional[bool] = None
    scope: Optional[DepartmentScope] = None
    term: Optional[str] = None
    department: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return self == EventFilter()

    def narrow(self, **changes) -> "EventFilter":
        return replace(self, **changes)

    def matches(self, event) -> bool:
        if self.excluded_status is not None and event.status == self.excluded_status:
            return False
        if self.visible_to_students is not None and bool(event.is_visible_to_students) != self.visible_to_students:
            return False
        if self.scope is not None and not self.scope.covers(event):
            return False
        if self.term:
            needle = self.term.lower()
            if not any(needle in (getattr(event, field) or "").lower() for field in SEARCHABLE_FIELDS):
                return False
        if self.department is not None and event.department != self.department:
            return False
        if self.status is not None and event.status != self.status:
            return False
        if self.date_from is not None and (event.date is None or event.date < self.date_from):
            return False
        if self.date_to is not None and (event.date is None or event.date > self.date_to):
            return False
        return True

    def to_criteria(self) -> list:
        Event = models.Event
        criteria = []
        if self.excluded_status is not None:
            criteria.append(Event.status != self.excluded_status)
        if self.visible_to_students is not None:
            criteria.append(Event.is_visible_to_students.is_(self.visible_to_students))
        if self.scope is not None:
            criteria.append(self.scope.to_criterion())
        if self.term:
            needle = self.term.lower()
            criteria.append(
                or_(
                    *(
                        func.lower(getattr(Event, field)).contains(needle, autoescape=True)
                        for field in SEARCHABLE_FIELDS
                    )
                )
            )
        if self.department is not None:
            criteria.append(Event.department == self.department)
        if self.status is not None:
            criteria.append(Event.status == self.status)
        if self.date_from is not None:
            criteria.append(Event.date >= self.date_from)
        if self.date_to is not None:
            criteria.append(Event.date <= self.date_to)
        return criteria


def _visible_to_students(_department: Optional[str]) -> EventFilter:
    return EventFilter(excluded_status=EventStatus.disabled.value, visible_to_students=True)


def _department_scoped(department: Optional[str]) -> EventFilter:
    return EventFilter(excluded_status=EventStatus.disabled.value, scope=DepartmentScope(department))


def _everything(_department: Optional[str]) -> EventFilter:
    return EventFilter()


_ROLE_FILTERS: dict[UserRole, Callable[[Optional[str]], EventFilter]] = {
    UserRole.public: _visible_to_students,
    UserRole.student: _visible_to_students,
    UserRole.staff: _department_scoped,
    UserRole.admin: _everything,
}

_ROLE_RESPONSE_MODELS: dict[UserRole, type[schemas.EventResponse]] = {
    UserRole.public: schemas.EventResponse,
    UserRole.student: schemas.EventResponse,
    UserRole.staff: schemas.StaffEventResponse,
    UserRole.admin: schemas.StaffEventResponse,
}


def coerce_role(role) -> UserRole:
    """Map a role value to the closed enum; anything unknown is treated as public."""
    if isinstance(role, UserRole):
        return role
    if isinstance(role, str):
        wanted = role.strip().lower()
        for member in UserRole:
            if member.value.lower() == wanted or member.name == wanted:
                return member
    return UserRole.public


def build_event_query(role, department: Optional[str] = None) -> EventFilter:
    return _ROLE_FILTERS[coerce_role(role)](department)


def response_model_for(role) -> type[schemas.EventResponse]:
    return _ROLE_RESPONSE_MODELS[coerce_role(role)]


def event_projection(role) -> frozenset[str]:
    return frozenset(response_model_for(role).model_fields)
