"""The participant's coaching page and its three form actions.

Form handlers never raise: each returns the ``hl_msg`` code the page
shows after the redirect.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from libs.auth.models import AuthUser
from libs.auth.nonce import create_nonce, verify_nonce
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityState,
    ActivityStatus,
    ActivityType,
    CoachingSession,
    Cohort,
    CompletionStatus,
    Enrollment,
    SessionStatus,
)
from services.learning_service.schemas.pages import (
    CoachingNonces,
    EnrollmentOption,
    FlashMessage,
    MyCoachingPage,
    SessionView,
)
from services.learning_service.services import coach_assignments, coaching, pathways
from services.learning_service.services.views import active_enrollments_for, coach_contact
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SCHEDULE_ACTION = "hl_schedule_session"
CANCEL_ACTION = "hl_cancel_session"
RESCHEDULE_ACTION = "hl_reschedule_session"

DEFAULT_SESSION_TITLE = "Coaching Session"

MESSAGES = {
    "scheduled": ("success", "Session scheduled successfully."),
    "schedule_error": ("error", "Could not schedule session. Please try again."),
    "cancelled": ("success", "Session cancelled."),
    "cancel_error": ("error", "Could not cancel session."),
    "rescheduled": ("success", "Session rescheduled successfully."),
    "reschedule_error": ("error", "Could not reschedule session."),
}


def flash_message(code: Optional[str]) -> Optional[FlashMessage]:
    if not code or code not in MESSAGES:
        return None
    level, text = MESSAGES[code]
    return FlashMessage(level=level, text=text)


def _session_view(session: CoachingSession, can_cancel: bool) -> SessionView:
    scheduled = session.session_status == SessionStatus.SCHEDULED
    return SessionView(
        id=session.id,
        session_title=session.session_title or DEFAULT_SESSION_TITLE,
        session_datetime=session.session_datetime,
        meeting_url=session.meeting_url,
        location=session.location,
        session_status=session.session_status,
        can_cancel=scheduled and can_cancel,
        can_reschedule=scheduled,
    )


async def suggested_session_title(db: AsyncSession, enrollment: Enrollment) -> str:
    """Title of the first coaching activity the enrollment has not completed."""
    result = await db.execute(
        select(Activity.id, Activity.title)
        .where(
            Activity.cohort_id == enrollment.cohort_id,
            Activity.activity_type == ActivityType.COACHING_SESSION_ATTENDANCE,
            Activity.status == ActivityStatus.ACTIVE,
        )
        .order_by(Activity.ordering_hint, Activity.title)
    )
    activities = result.all()
    if not activities:
        return DEFAULT_SESSION_TITLE

    done = await db.execute(
        select(ActivityState.activity_id).where(
            ActivityState.enrollment_id == enrollment.id,
            ActivityState.completion_status == CompletionStatus.COMPLETE,
        )
    )
    completed = set(done.scalars().all())
    for activity_id, title in activities:
        if activity_id not in completed:
            return title
    return DEFAULT_SESSION_TITLE


async def _enrollment_label(db: AsyncSession, enrollment: Enrollment) -> str:
    cohort = await db.get(Cohort, enrollment.cohort_id)
    programs = await pathways.get_pathways_for_enrollment(db, enrollment)
    name = programs[0][0].name if programs else "Program"
    return f"{name} ({cohort.name})" if cohort else name


async def build_my_coaching_page(
    db: AsyncSession,
    user: AuthUser,
    *,
    enrollment_id: Optional[uuid.UUID] = None,
    hl_msg: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MyCoachingPage:
    enrollments = await active_enrollments_for(db, user.user_id)
    if not enrollments:
        return MyCoachingPage(
            message=flash_message(hl_msg),
            empty_notice="You are not currently enrolled in any programs.",
        )

    enrollment = next((e for e in enrollments if e.id == enrollment_id), enrollments[0])
    cohort = await db.get(Cohort, enrollment.cohort_id)
    can_cancel = coaching.is_cancellation_allowed(cohort)

    coach = await coach_assignments.get_coach_for_enrollment(db, enrollment)
    upcoming = await coaching.get_upcoming_sessions(db, enrollment.id, now)
    past = await coaching.get_past_sessions(db, enrollment.id, now)

    return MyCoachingPage(
        enrollment_id=enrollment.id,
        cohort_id=enrollment.cohort_id,
        enrollments=[
            EnrollmentOption(
                enrollment_id=e.id,
                cohort_id=e.cohort_id,
                label=await _enrollment_label(db, e),
            )
            for e in enrollments
        ],
        coach=coach_contact(coach),
        upcoming=[_session_view(s, can_cancel) for s in upcoming],
        past=[_session_view(s, False) for s in past],
        can_cancel=can_cancel,
        suggested_session_title=await suggested_session_title(db, enrollment),
        nonces=CoachingNonces(
            hl_schedule_session_nonce=create_nonce(SCHEDULE_ACTION, user.user_id),
            hl_cancel_session_nonce=create_nonce(CANCEL_ACTION, user.user_id),
            hl_reschedule_session_nonce=create_nonce(RESCHEDULE_ACTION, user.user_id),
        ),
        message=flash_message(hl_msg),
    )


# ---------------------------------------------------------------------------
# Form actions
# ---------------------------------------------------------------------------


async def _owned_session(
    db: AsyncSession, user: AuthUser, session_id: Optional[uuid.UUID]
) -> Optional[CoachingSession]:
    if session_id is None:
        return None
    session = await db.get(CoachingSession, session_id)
    if session is None:
        return None
    enrollment = await db.get(Enrollment, session.mentor_enrollment_id)
    if enrollment is None or enrollment.user_id != user.user_id:
        return None
    return session


async def schedule_from_form(
    db: AsyncSession,
    user: AuthUser,
    *,
    nonce: str,
    enrollment_id: Optional[uuid.UUID],
    session_title: Optional[str] = None,
    meeting_url: Optional[str] = None,
    session_datetime: Optional[datetime] = None,
) -> str:
    if (
        not verify_nonce(nonce, SCHEDULE_ACTION, user.user_id)
        or enrollment_id is None
        or session_datetime is None
    ):
        return "schedule_error"

    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None or enrollment.user_id != user.user_id:
        logger.warning("Schedule refused: enrollment %s is not owned by %s", enrollment_id, user.user_id)
        return "schedule_error"

    coach = await coach_assignments.get_coach_for_enrollment(db, enrollment)
    try:
        await coaching.create_session(
            db,
            cohort_id=enrollment.cohort_id,
            mentor_enrollment_id=enrollment.id,
            coach_user_id=coach.coach_user_id if coach else None,
            actor_user_id=user.user_id,
            session_title=(session_title or "").strip() or None,
            meeting_url=(meeting_url or "").strip() or None,
            session_datetime=session_datetime,
        )
    except HTTPException as exc:
        await db.rollback()
        logger.warning("Schedule failed for enrollment %s: %s", enrollment_id, exc.detail)
        return "schedule_error"
    return "scheduled"


async def cancel_from_form(
    db: AsyncSession, user: AuthUser, *, nonce: str, session_id: Optional[uuid.UUID]
) -> str:
    if not verify_nonce(nonce, CANCEL_ACTION, user.user_id):
        return "cancel_error"
    session = await _owned_session(db, user, session_id)
    if session is None:
        return "cancel_error"

    cohort = await db.get(Cohort, session.cohort_id)
    if not coaching.is_cancellation_allowed(cohort):
        return "cancel_error"

    try:
        await coaching.cancel_session(db, session.id, actor_user_id=user.user_id)
    except HTTPException as exc:
        await db.rollback()
        logger.warning("Cancel failed for session %s: %s", session_id, exc.detail)
        return "cancel_error"
    return "cancelled"


async def reschedule_from_form(
    db: AsyncSession,
    user: AuthUser,
    *,
    nonce: str,
    session_id: Optional[uuid.UUID],
    new_datetime: Optional[datetime],
) -> str:
    if not verify_nonce(nonce, RESCHEDULE_ACTION, user.user_id) or new_datetime is None:
        return "reschedule_error"
    session = await _owned_session(db, user, session_id)
    if session is None:
        return "reschedule_error"

    try:
        await coaching.reschedule_session(
            db, session.id, new_datetime, actor_user_id=user.user_id
        )
    except HTTPException as exc:
        await db.rollback()
        logger.warning("Reschedule failed for session %s: %s", session_id, exc.detail)
        return "reschedule_error"
    return "rescheduled"


def redirect_target(code: str, enrollment_id: Optional[uuid.UUID] = None) -> str:
    url = "/learning/my-coaching?"
    if enrollment_id:
        url += f"enrollment={enrollment_id}&"
    return url + f"hl_msg={code}"
