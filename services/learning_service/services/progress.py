"""Writes to activity state, and the completion events that drive them."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityState,
    ActivityStatus,
    ActivityType,
    CompletionStatus,
    Enrollment,
    EnrollmentStatus,
)
from services.learning_service.services import audit, integrations, reporting
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def status_for_percent(percent: float) -> CompletionStatus:
    if percent >= 100:
        return CompletionStatus.COMPLETE
    if percent > 0:
        return CompletionStatus.IN_PROGRESS
    return CompletionStatus.NOT_STARTED


async def upsert_activity_state(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    percent: float,
    now: Optional[datetime] = None,
) -> ActivityState:
    now = now or utc_now()
    percent = max(0.0, min(100.0, float(percent)))
    result = await db.execute(
        select(ActivityState).where(
            ActivityState.enrollment_id == enrollment_id,
            ActivityState.activity_id == activity_id,
        )
    )
    state = result.scalar_one_or_none()
    if state is None:
        state = ActivityState(enrollment_id=enrollment_id, activity_id=activity_id)
        db.add(state)

    new_status = status_for_percent(percent)
    if new_status == CompletionStatus.COMPLETE and not state.is_complete:
        state.completed_at = now
    elif new_status != CompletionStatus.COMPLETE:
        state.completed_at = None

    state.completion_percent = percent
    state.completion_status = new_status
    state.last_computed_at = now
    return state


async def record_activity_progress(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    percent: float,
    actor_user_id: Optional[str] = None,
) -> ActivityState:
    """Set an enrollment's progress on an activity, recompute its rollup, commit."""
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    activity = await db.get(Activity, activity_id)
    if activity is None or activity.cohort_id != enrollment.cohort_id:
        raise HTTPException(status_code=404, detail="Activity not found")

    state = await upsert_activity_state(
        db, enrollment_id=enrollment_id, activity_id=activity_id, percent=percent
    )
    audit.log(
        db,
        "activity_state.updated",
        actor_user_id=actor_user_id,
        cohort_id=enrollment.cohort_id,
        entity_type="activity",
        entity_id=activity_id,
        after_data={
            "enrollment_id": enrollment_id,
            "completion_percent": state.completion_percent,
            "completion_status": state.completion_status,
        },
    )
    await db.flush()
    await reporting.compute_rollups(db, enrollment_id)
    await db.commit()
    await db.refresh(state)
    return state


async def mark_activity_complete(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    actor_user_id: Optional[str] = None,
) -> ActivityState:
    return await record_activity_progress(
        db,
        enrollment_id=enrollment_id,
        activity_id=activity_id,
        percent=100,
        actor_user_id=actor_user_id,
    )


async def handle_course_completed(db: AsyncSession, *, user_id: str, course_id: int) -> int:
    """Complete every active course activity pointing at ``course_id`` for the user.

    Returns how many activity states were written.
    """
    enrollments_result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
    )
    by_cohort = {e.cohort_id: e for e in enrollments_result.scalars().all()}
    if not by_cohort:
        return 0

    activities_result = await db.execute(
        select(Activity).where(
            Activity.activity_type == ActivityType.LEARNDASH_COURSE,
            Activity.status == ActivityStatus.ACTIVE,
            Activity.cohort_id.in_(list(by_cohort)),
        )
    )
    matching = [
        a
        for a in activities_result.scalars().all()
        if integrations.course_id_from_ref(a.external_ref) == int(course_id)
    ]

    touched: set[uuid.UUID] = set()
    for activity in matching:
        enrollment = by_cohort[activity.cohort_id]
        await upsert_activity_state(
            db, enrollment_id=enrollment.id, activity_id=activity.id, percent=100
        )
        audit.log(
            db,
            "learndash_course.completed",
            actor_user_id=user_id,
            cohort_id=activity.cohort_id,
            entity_type="activity",
            entity_id=activity.id,
            after_data={
                "user_id": user_id,
                "course_id": course_id,
                "enrollment_id": enrollment.id,
            },
        )
        touched.add(enrollment.id)

    await db.flush()
    for enrollment_id in touched:
        await reporting.compute_rollups(db, enrollment_id)
    await db.commit()

    logger.info("Course %s completed by %s: %s activities updated", course_id, user_id, len(matching))
    return len(matching)


async def handle_form_submitted(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    record_id: Optional[str] = None,
) -> ActivityState:
    """A form-builder submission completes the assessment or observation it belongs to."""
    activity = await db.get(Activity, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    if activity.activity_type not in (
        ActivityType.TEACHER_SELF_ASSESSMENT,
        ActivityType.OBSERVATION,
        ActivityType.CHILDREN_ASSESSMENT,
    ):
        raise HTTPException(status_code=400, detail="Activity does not accept form submissions")

    logger.info("Form submission %s for activity %s", record_id, activity_id)
    return await mark_activity_complete(
        db, enrollment_id=enrollment_id, activity_id=activity_id
    )
