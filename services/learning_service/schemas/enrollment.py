from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.learning_service.models import (
    AssignmentType,
    EnrollmentRole,
    EnrollmentStatus,
    MembershipType,
    RecordStatus,
)

# --- Enrollment Schemas ---


class EnrollmentCreate(BaseModel):
    cohort_id: UUID
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[EnrollmentRole] = Field(default_factory=list)
    school_id: Optional[UUID] = None
    district_id: Optional[UUID] = None

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, value: List[EnrollmentRole]) -> List[EnrollmentRole]:
        return list(dict.fromkeys(value))


class EnrollmentUpdate(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: Optional[List[EnrollmentRole]] = None
    school_id: Optional[UUID] = None
    district_id: Optional[UUID] = None
    status: Optional[EnrollmentStatus] = None

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, value: Optional[List[EnrollmentRole]]) -> Optional[List[EnrollmentRole]]:
        if value is None:
            return None
        return list(dict.fromkeys(value))


class EnrollmentResponse(BaseModel):
    id: UUID
    cohort_id: UUID
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    assigned_pathway_id: Optional[UUID] = None
    school_id: Optional[UUID] = None
    district_id: Optional[UUID] = None
    status: EnrollmentStatus
    enrolled_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PathwayAssignmentCreate(BaseModel):
    pathway_id: UUID


class PathwayAssignmentResponse(BaseModel):
    id: UUID
    enrollment_id: UUID
    pathway_id: UUID
    assignment_type: AssignmentType
    assigned_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Team Schemas ---


class TeamCreate(BaseModel):
    cohort_id: UUID
    school_id: Optional[UUID] = None
    name: str


class TeamResponse(BaseModel):
    id: UUID
    cohort_id: UUID
    school_id: Optional[UUID] = None
    name: str
    status: RecordStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamMemberCreate(BaseModel):
    enrollment_id: UUID
    membership_type: MembershipType = MembershipType.MEMBER
    force_override: bool = False


class TeamMembershipResponse(BaseModel):
    id: UUID
    team_id: UUID
    enrollment_id: UUID
    membership_type: MembershipType
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
