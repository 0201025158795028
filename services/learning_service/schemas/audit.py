from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditLogResponse(BaseModel):
    id: UUID
    actor_user_id: Optional[str] = None
    cohort_id: Optional[UUID] = None
    action_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    before_data: Optional[dict] = None
    after_data: Optional[dict] = None
    reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
