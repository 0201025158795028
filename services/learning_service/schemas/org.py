from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from services.learning_service.models import CohortStatus, OrgUnitType, RecordStatus

# --- Org Unit Schemas ---


class OrgUnitBase(BaseModel):
    name: str
    code: Optional[str] = None
    orgunit_type: OrgUnitType
    parent_orgunit_id: Optional[UUID] = None


class OrgUnitCreate(OrgUnitBase):
    @model_validator(mode="after")
    def district_has_no_parent(self):
        if self.orgunit_type == OrgUnitType.DISTRICT and self.parent_orgunit_id:
            raise ValueError("A district cannot have a parent org unit")
        return self


class OrgUnitResponse(OrgUnitBase):
    id: UUID
    status: RecordStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Cohort Schemas ---


class CohortBase(BaseModel):
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: str = "America/New_York"
    district_id: Optional[UUID] = None
    settings: Optional[Dict[str, Any]] = None


class CohortCreate(CohortBase):
    status: CohortStatus = CohortStatus.FUTURE

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date is before start_date")
        return self


class CohortUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    timezone: Optional[str] = None
    district_id: Optional[UUID] = None
    settings: Optional[Dict[str, Any]] = None


class CohortStatusUpdate(BaseModel):
    status: CohortStatus
    reason: Optional[str] = None


class CohortResponse(CohortBase):
    id: UUID
    status: CohortStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CohortDetailResponse(CohortResponse):
    enrollment_count: int = 0
    pathway_count: int = 0
    team_count: int = 0
    avg_completion_percent: float = Field(default=0.0)
