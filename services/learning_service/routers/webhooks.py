"""Inbound events from the course platform and the form builder.

Both callers authenticate with a service-role token.
"""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.schemas.webhooks import (
    CourseCompletedEvent,
    FormSubmittedEvent,
    WebhookResult,
)
from services.learning_service.services import progress
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/webhooks", tags=["learning-webhooks"])
logger = get_logger(__name__)


@router.post("/course-completed", response_model=WebhookResult)
async def course_completed(
    event: CourseCompletedEvent,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    updated = await progress.handle_course_completed(
        db, user_id=event.user_id, course_id=event.course_id
    )
    logger.info(
        "course-completed for user %s course %s updated %s activities",
        event.user_id,
        event.course_id,
        updated,
    )
    return WebhookResult(updated=updated)


@router.post("/form-submitted", response_model=WebhookResult)
async def form_submitted(
    event: FormSubmittedEvent,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await progress.handle_form_submitted(
        db,
        enrollment_id=event.enrollment_id,
        activity_id=event.activity_id,
        record_id=event.record_id,
    )
    return WebhookResult(updated=1)
