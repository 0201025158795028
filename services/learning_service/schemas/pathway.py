from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from services.learning_service.models import (
    ActivityStatus,
    ActivityType,
    ActivityVisibility,
    CompletionStatus,
    DripType,
    OverrideType,
)

# --- Pathway Schemas ---


class PathwayBase(BaseModel):
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    objectives: Optional[str] = None
    syllabus_url: Optional[str] = None
    featured_image_url: Optional[str] = None
    avg_completion_time: Optional[str] = None
    expiration_date: Optional[date] = None
    target_roles: Optional[List[str]] = None


class PathwayCreate(PathwayBase):
    cohort_id: UUID


class PathwayUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    objectives: Optional[str] = None
    syllabus_url: Optional[str] = None
    featured_image_url: Optional[str] = None
    avg_completion_time: Optional[str] = None
    expiration_date: Optional[date] = None
    target_roles: Optional[List[str]] = None
    active_status: Optional[bool] = None


class PathwayResponse(PathwayBase):
    id: UUID
    cohort_id: UUID
    active_status: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Activity Schemas ---


class ActivityCreate(BaseModel):
    activity_type: ActivityType
    title: str
    description: Optional[str] = None
    ordering_hint: int = 0
    weight: float = 1.0
    external_ref: Optional[Dict[str, Any]] = None
    visibility: ActivityVisibility = ActivityVisibility.ALL


class ActivityUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    ordering_hint: Optional[int] = None
    weight: Optional[float] = Field(default=None, ge=0)
    external_ref: Optional[Dict[str, Any]] = None
    visibility: Optional[ActivityVisibility] = None


class ActivityResponse(ActivityCreate):
    id: UUID
    cohort_id: UUID
    pathway_id: UUID
    status: ActivityStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Gating Schemas ---


class DripRuleCreate(BaseModel):
    drip_type: DripType
    release_at_date: Optional[datetime] = None
    base_activity_id: Optional[UUID] = None
    delay_days: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_fields_for_type(self):
        if self.drip_type == DripType.FIXED_DATE and self.release_at_date is None:
            raise ValueError("fixed_date rules need release_at_date")
        if self.drip_type == DripType.AFTER_COMPLETION_DELAY and self.base_activity_id is None:
            raise ValueError("after_completion_delay rules need base_activity_id")
        return self


class DripRuleResponse(DripRuleCreate):
    id: UUID
    activity_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OverrideCreate(BaseModel):
    enrollment_id: UUID
    activity_id: UUID
    override_type: OverrideType
    reason: Optional[str] = None


class OverrideResponse(OverrideCreate):
    id: UUID
    applied_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Progress Schemas ---


class ActivityProgressUpdate(BaseModel):
    enrollment_id: UUID
    completion_percent: float = Field(ge=0, le=100)


class ActivityStateResponse(BaseModel):
    enrollment_id: UUID
    activity_id: UUID
    completion_percent: float
    completion_status: CompletionStatus
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
