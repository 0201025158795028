import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from services.learning_service.models.enums import (
    AvailabilityStatus,
    LockedReason,
    PrereqType,
)


class AvailabilityResult(BaseModel):
    """Gate state of one activity for one enrollment."""

    availability_status: AvailabilityStatus
    locked_reason: Optional[LockedReason] = None
    blockers: list[uuid.UUID] = Field(default_factory=list)
    prereq_type: Optional[PrereqType] = None
    n_required: Optional[int] = None
    next_available_at: Optional[datetime] = None

    @property
    def is_locked(self) -> bool:
        return self.availability_status == AvailabilityStatus.LOCKED

    @classmethod
    def available(cls) -> "AvailabilityResult":
        return cls(availability_status=AvailabilityStatus.AVAILABLE)

    @classmethod
    def completed(cls) -> "AvailabilityResult":
        return cls(availability_status=AvailabilityStatus.COMPLETED)


class CycleCheck(BaseModel):
    valid: bool
    cycle: Optional[list[uuid.UUID]] = None


class PrereqGroupIn(BaseModel):
    prereq_type: PrereqType = PrereqType.ALL_OF
    n_required: Optional[int] = Field(default=None, ge=1)
    activity_ids: list[uuid.UUID] = Field(default_factory=list)


class PrerequisitesUpdate(BaseModel):
    groups: list[PrereqGroupIn] = Field(default_factory=list)


class PrereqGroupResponse(BaseModel):
    id: uuid.UUID
    prereq_type: PrereqType
    n_required: Optional[int] = None
    activity_ids: list[uuid.UUID]
