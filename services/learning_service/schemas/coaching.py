from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from services.learning_service.models import (
    AttendanceStatus,
    CoachScopeType,
    SessionStatus,
)

# --- Coach Assignment Schemas ---


class CoachAssignmentCreate(BaseModel):
    coach_user_id: str
    coach_name: Optional[str] = None
    coach_email: Optional[str] = None
    scope_type: CoachScopeType
    scope_id: UUID
    cohort_id: UUID
    effective_from: date
    effective_to: Optional[date] = None


class CoachAssignmentResponse(CoachAssignmentCreate):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CoachAssignmentEnd(BaseModel):
    end_date: Optional[date] = None


# --- Coaching Session Schemas ---


class CoachingSessionCreate(BaseModel):
    cohort_id: UUID
    mentor_enrollment_id: UUID
    coach_user_id: Optional[str] = None
    session_title: Optional[str] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None
    session_datetime: Optional[datetime] = None
    notes: Optional[str] = None


class CoachingSessionUpdate(BaseModel):
    session_title: Optional[str] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None
    session_datetime: Optional[datetime] = None
    notes: Optional[str] = None


class SessionStatusUpdate(BaseModel):
    session_status: SessionStatus


class SessionAttendanceUpdate(BaseModel):
    attendance_status: AttendanceStatus


class SessionReschedule(BaseModel):
    new_datetime: datetime
    meeting_url: Optional[str] = None


class CoachingSessionResponse(BaseModel):
    id: UUID
    cohort_id: UUID
    coach_user_id: str
    mentor_enrollment_id: UUID
    session_title: Optional[str] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None
    session_datetime: Optional[datetime] = None
    session_status: SessionStatus
    attendance_status: AttendanceStatus
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_from_session_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)
