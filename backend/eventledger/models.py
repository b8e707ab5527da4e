import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    TIMESTAMP,
    Date,
    Float,
    ForeignKey,
    Enum,
    Table,
    UniqueConstraint,
    func,
    Boolean,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from .database import Base


class UserRole(str, enum.Enum):
    public = "Public"
    student = "Student"
    staff = "Staff"
    admin = "Admin"


class EventStatus(str, enum.Enum):
    active = "Active"
    completed = "Completed"
    cancelled = "Cancelled"
    disabled = "Disabled"


class AttendanceStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    attended = "Attended"
    completed = "Completed"
    disapproved = "Disapproved"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    role = Column(Enum(UserRole), nullable=False, default=UserRole.student)
    department = Column(String(255), index=True)
    academic_year = Column(String(50))
    community_service_hours = Column(Float, nullable=False, default=0.0, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    attendance = relationship(
        "AttendanceEntry",
        back_populates="user",
        foreign_keys="AttendanceEntry.user_id",
    )


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)

    events = relationship("Event", secondary="event_departments", back_populates="departments")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    location = Column(String(255), nullable=False)
    hours = Column(Float, nullable=False, default=0.0, server_default="0")
    max_participants = Column(Integer, nullable=True, default=0, server_default="0")
    department = Column(String(255), index=True)
    is_for_all_departments = Column(Boolean, nullable=False, default=False, server_default="false")
    status = Column(String(20), nullable=False, default=EventStatus.active.value, server_default="Active", index=True)
    is_visible_to_students = Column(Boolean, nullable=False, default=True, server_default="true")
    requires_approval = Column(Boolean, nullable=False, default=True, server_default="true")
    is_public_registration_enabled = Column(Boolean, nullable=False, default=False, server_default="false")
    image_url = Column(String(500))
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    created_by = relationship("User", foreign_keys=[created_by_id])
    departments = relationship("Department", secondary="event_departments", back_populates="events")
    attendance = relationship(
        "AttendanceEntry",
        back_populates="event",
        order_by="AttendanceEntry.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    @property
    def department_names(self) -> set[str]:
        return {dept.name for dept in self.departments}


class AttendanceEntry(Base):
    __tablename__ = "attendance_entries"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_attendance_event_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=AttendanceStatus.pending.value, server_default="Pending")
    registration_approved = Column(Boolean, nullable=False, default=False, server_default="false")
    registered_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    time_in = Column(TIMESTAMP(timezone=True), nullable=True)
    time_out = Column(TIMESTAMP(timezone=True), nullable=True)
    reflection = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(TIMESTAMP(timezone=True), nullable=True)

    event = relationship("Event", back_populates="attendance")
    user = relationship("User", back_populates="attendance", foreign_keys=[user_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])


event_departments = Table(
    "event_departments",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("department_id", Integer, ForeignKey("departments.id"), primary_key=True),
)
