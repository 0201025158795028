"""Rows for the scoped, paginated directory listings and the detail pages."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from services.learning_service.models import CohortStatus, SessionStatus

# --- Listing rows ---


class CohortRow(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    status: CohortStatus
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    participant_count: int = 0
    school_count: int = 0


class LearnerRow(BaseModel):
    enrollment_id: UUID
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    roles_display: str = ""
    cohort_id: UUID
    cohort_name: Optional[str] = None
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    completion_percent: int = 0


class DistrictRow(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    school_count: int = 0
    active_cohort_count: int = 0


class SchoolRow(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    district_id: Optional[UUID] = None
    district_name: Optional[str] = None
    leader_names: List[str] = Field(default_factory=list)


class TeamRow(BaseModel):
    id: UUID
    name: str
    cohort_id: UUID
    cohort_name: Optional[str] = None
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    member_count: int = 0


class PathwayRow(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    cohort_id: UUID
    cohort_name: Optional[str] = None
    target_roles: List[str] = Field(default_factory=list)
    activity_count: int = 0
    avg_completion_time: Optional[str] = None


class SessionRow(BaseModel):
    id: UUID
    cohort_id: UUID
    session_title: str
    session_datetime: Optional[datetime] = None
    session_status: SessionStatus
    meeting_url: Optional[str] = None
    coach_user_id: str
    mentor_enrollment_id: UUID
    participant_name: Optional[str] = None


# --- Detail pages ---


class MemberRow(BaseModel):
    enrollment_id: UUID
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    membership_type: str
    roles: List[str] = Field(default_factory=list)
    completion_percent: float = 0.0


class TeamPage(BaseModel):
    id: UUID
    name: str
    cohort_id: UUID
    cohort_name: Optional[str] = None
    school_id: Optional[UUID] = None
    school_name: Optional[str] = None
    members: List[MemberRow] = Field(default_factory=list)
    avg_completion_percent: float = 0.0


class MyTeamPage(BaseModel):
    teams: List[TeamRow] = Field(default_factory=list)
    team: Optional[TeamPage] = None
    empty_notice: Optional[str] = None


class CohortSummaryRow(BaseModel):
    id: UUID
    name: str
    status: CohortStatus
    participant_count: int = 0


class DistrictPage(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    cohorts: List[CohortSummaryRow] = Field(default_factory=list)
    schools: List[SchoolRow] = Field(default_factory=list)
    participant_count: int = 0


class SchoolPage(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    district_id: Optional[UUID] = None
    district_name: Optional[str] = None
    cohorts: List[CohortSummaryRow] = Field(default_factory=list)
    staff: List[LearnerRow] = Field(default_factory=list)


class TeamSummaryRow(BaseModel):
    team_id: UUID
    team_name: str
    member_count: int
    avg_completion_percent: float


class CohortWorkspace(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    status: CohortStatus
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_enrollments: int = 0
    avg_completion_percent: float = 0.0
    pathway_count: int = 0
    teams: List[TeamSummaryRow] = Field(default_factory=list)
    school_id: Optional[UUID] = None
    district_id: Optional[UUID] = None


# --- Reports ---


class ParticipantReportRow(BaseModel):
    enrollment_id: UUID
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    school_name: str = ""
    team_name: str = ""
    cohort_completion_percent: float = 0.0
    pathway_completion_percent: float = 0.0


class ParticipantReport(BaseModel):
    cohort_id: UUID
    rows: List[ParticipantReportRow] = Field(default_factory=list)


class CohortSummary(BaseModel):
    cohort_id: UUID
    total_enrollments: int
    avg_completion_percent: float
    teams: List[TeamSummaryRow] = Field(default_factory=list)
