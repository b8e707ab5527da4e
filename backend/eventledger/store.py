from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models
from .exceptions import EventNotFound, StoreError


class EventStore:
    """Reads and writes events (with their attendance) through one session."""

    def __init__(self, db: Session):
        self.db = db

    def _event_query(self, *, with_users: bool = False):
        attendance = selectinload(models.Event.attendance)
        if with_users:
            attendance = attendance.selectinload(models.AttendanceEntry.user)
        return self.db.query(models.Event).options(attendance, selectinload(models.Event.departments))

    def fetch_event(self, event_id: int, *, with_users: bool = False) -> models.Event:
        try:
            event = self._event_query(with_users=with_users).filter(models.Event.id == event_id).first()
        except SQLAlchemyError as exc:
            raise StoreError("fetch event", event_id, exc) from exc
        if event is None:
            raise EventNotFound(event_id)
        return event

    def save_event(self, event: models.Event) -> None:
        try:
            self.db.add(event)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError("save event", getattr(event, "id", None), exc) from exc

    def fetch_user(self, user_id: int) -> models.User | None:
        try:
            return self.db.query(models.User).filter(models.User.id == user_id).first()
        except SQLAlchemyError as exc:
            raise StoreError("fetch user", cause=exc) from exc

    def fetch_users(self, user_ids) -> dict[int, models.User]:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}
        try:
            users = self.db.query(models.User).filter(models.User.id.in_(ids)).all()
        except SQLAlchemyError as exc:
            raise StoreError("fetch users", cause=exc) from exc
        return {user.id: user for user in users}

    def find_events(self, event_filter, *, limit: int) -> list[models.Event]:
        query = self._event_query()
        criteria = event_filter.to_criteria()
        if criteria:
            query = query.filter(*criteria)
        try:
            return (
                query.order_by(models.Event.created_at.desc(), models.Event.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreError("find events", cause=exc) from exc

    def events_with_attendance_status(self, status: str) -> list[models.Event]:
        try:
            return (
                self._event_query(with_users=True)
                .filter(models.Event.attendance.any(models.AttendanceEntry.status == status))
                .order_by(models.Event.id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreError("list events by attendance status", cause=exc) from exc
