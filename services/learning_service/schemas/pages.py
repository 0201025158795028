"""Response models for the participant-facing pages."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from services.learning_service.models import (
    ActivityType,
    AvailabilityStatus,
    CompletionStatus,
    SessionStatus,
)
from services.learning_service.schemas.availability import AvailabilityResult


class ActivityAction(BaseModel):
    """What a participant can do with an available activity.

    Either a button (``label`` + ``url``) or a plain ``message``.
    """

    label: Optional[str] = None
    url: Optional[str] = None
    message: Optional[str] = None


class CoachContact(BaseModel):
    coach_user_id: str
    name: Optional[str] = None
    email: Optional[str] = None


# --- My Programs ---


class ProgramCard(BaseModel):
    enrollment_id: UUID
    pathway_id: UUID
    pathway_name: str
    cohort_id: UUID
    cohort_name: str
    featured_image_url: Optional[str] = None
    completion_percent: int
    status_label: str
    action_label: str
    program_url: str


class MyProgramsPage(BaseModel):
    coach: Optional[CoachContact] = None
    programs: List[ProgramCard] = Field(default_factory=list)


# --- Program Page ---


class ActivityCard(BaseModel):
    activity_id: UUID
    title: str
    activity_type: ActivityType
    type_label: str
    availability: AvailabilityResult
    completion_percent: int
    completion_status: CompletionStatus
    completed_at: Optional[datetime] = None
    status_text: str
    lock_reason: Optional[str] = None
    action: Optional[ActivityAction] = None


class ProgramPage(BaseModel):
    pathway_id: UUID
    pathway_name: str
    description: Optional[str] = None
    objectives: Optional[str] = None
    syllabus_url: Optional[str] = None
    featured_image_url: Optional[str] = None
    avg_completion_time: Optional[str] = None
    expiration_date: Optional[date] = None
    enrollment_id: UUID
    cohort_id: UUID
    cohort_name: Optional[str] = None
    overall_percent: int
    program_status: str
    activities: List[ActivityCard] = Field(default_factory=list)


class MyProgressPage(BaseModel):
    programs: List[ProgramPage] = Field(default_factory=list)


# --- Activity Page ---


class FormEmbed(BaseModel):
    form_id: int
    hidden_fields: dict
    html: Optional[str] = None


class ActivityPage(BaseModel):
    activity_id: UUID
    title: str
    description: Optional[str] = None
    activity_type: ActivityType
    type_label: str
    enrollment_id: UUID
    pathway_id: UUID
    pathway_name: Optional[str] = None
    program_url: str
    view: AvailabilityStatus
    flash_message: Optional[str] = None
    lock_reason: Optional[str] = None
    redirect_url: Optional[str] = None
    form: Optional[FormEmbed] = None
    instance_id: Optional[str] = None
    notice: Optional[str] = None


# --- My Coaching ---


class SessionView(BaseModel):
    id: UUID
    session_title: str
    session_datetime: Optional[datetime] = None
    meeting_url: Optional[str] = None
    location: Optional[str] = None
    session_status: SessionStatus
    can_cancel: bool = False
    can_reschedule: bool = False


class EnrollmentOption(BaseModel):
    enrollment_id: UUID
    cohort_id: UUID
    label: str


class FlashMessage(BaseModel):
    level: str
    text: str


class CoachingNonces(BaseModel):
    hl_schedule_session_nonce: str
    hl_cancel_session_nonce: str
    hl_reschedule_session_nonce: str


class MyCoachingPage(BaseModel):
    enrollment_id: Optional[UUID] = None
    cohort_id: Optional[UUID] = None
    enrollments: List[EnrollmentOption] = Field(default_factory=list)
    coach: Optional[CoachContact] = None
    upcoming: List[SessionView] = Field(default_factory=list)
    past: List[SessionView] = Field(default_factory=list)
    can_cancel: bool = True
    suggested_session_title: str = "Coaching Session"
    nonces: Optional[CoachingNonces] = None
    message: Optional[FlashMessage] = None
    empty_notice: Optional[str] = None
