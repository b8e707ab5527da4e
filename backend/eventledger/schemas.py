from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


UNLIMITED = "Unlimited"

OutcomeStatus = Literal["success", "already_registered", "error"]


class AttendanceEntryResponse(BaseModel):
    user_id: int
    status: str
    registration_approved: bool
    registered_at: Optional[datetime] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    location: str
    hours: Optional[float] = None
    max_participants: Optional[int] = None
    department: Optional[str] = None
    departments: List[str] = Field(default_factory=list)
    is_for_all_departments: bool = False
    status: str
    is_visible_to_students: bool = True
    requires_approval: bool = True
    is_public_registration_enabled: bool = False
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    attendance: List[AttendanceEntryResponse] = Field(default_factory=list)


class StaffEventResponse(EventResponse):
    created_by_id: Optional[int] = None
    updated_at: Optional[datetime] = None


class AttendanceStats(BaseModel):
    total: int
    approved: int
    pending: int
    disapproved: int
    attended: int
    available_slots: Union[int, Literal["Unlimited"]]
    is_full: bool


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class RegistrationRequest(BaseModel):
    user_id: Optional[int] = None
    status: Optional[str] = None
    registration_approved: Optional[bool] = None


class RegistrationOutcome(BaseModel):
    user_id: Optional[int] = None
    status: OutcomeStatus
    message: str


class BatchRegistrationRequest(BaseModel):
    # items stay raw here; each one is checked on its own by the batch processor
    registrations: List[Dict[str, Any]] = Field(..., min_length=1)


class BatchRegistrationResponse(BaseModel):
    event_id: int
    registered: int
    already_registered: int
    failed: int
    results: List[RegistrationOutcome]


class SearchFilters(BaseModel):
    department: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @field_validator("department", "status")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class EventAnalytics(BaseModel):
    event_id: int
    title: str
    total_registrations: int
    attendance_stats: AttendanceStats
    department_breakdown: Dict[str, int] = Field(default_factory=dict)
    year_breakdown: Dict[str, int] = Field(default_factory=dict)


class DisapprovalRequest(BaseModel):
    reason: Optional[str] = None


class ReflectionRequest(BaseModel):
    reflection: str


class RegistrationStatusResponse(BaseModel):
    event_id: int
    user_id: int
    status: str
    registration_approved: bool


class StudentServiceHours(BaseModel):
    user_id: int
    email: str
    name: Optional[str] = None
    department: Optional[str] = None
    academic_year: Optional[str] = None
    total_hours: float


class ServiceHoursReport(BaseModel):
    threshold: float
    students: List[StudentServiceHours]
