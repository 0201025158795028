"""Inbound event payloads from the course platform and the form builder."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CourseCompletedEvent(BaseModel):
    user_id: str
    course_id: int


class FormSubmittedEvent(BaseModel):
    enrollment_id: UUID
    activity_id: UUID
    record_id: Optional[str] = None


class WebhookResult(BaseModel):
    status: str = "ok"
    updated: int = 0
