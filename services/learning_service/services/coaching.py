"""Coaching session lifecycle.

A session starts ``scheduled`` and moves once to one of the terminal
statuses (attended, missed, cancelled, rescheduled). Rescheduling closes
the old row and opens a linked new one.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.learning_service.models import (
    TERMINAL_SESSION_STATUSES,
    Activity,
    ActivityStatus,
    ActivityType,
    AttendanceStatus,
    CoachingSession,
    Cohort,
    Enrollment,
    SessionStatus,
)
from services.learning_service.services import audit, progress, reporting
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_ATTENDANCE_FOR_STATUS = {
    SessionStatus.ATTENDED: AttendanceStatus.ATTENDED,
    SessionStatus.MISSED: AttendanceStatus.MISSED,
    SessionStatus.SCHEDULED: AttendanceStatus.UNKNOWN,
}

_STATUS_FOR_ATTENDANCE = {
    AttendanceStatus.ATTENDED: SessionStatus.ATTENDED,
    AttendanceStatus.MISSED: SessionStatus.MISSED,
    AttendanceStatus.UNKNOWN: SessionStatus.SCHEDULED,
}


async def get_session(db: AsyncSession, session_id: uuid.UUID) -> CoachingSession:
    session = await db.get(CoachingSession, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found.")
    return session


async def list_cohort_sessions(db: AsyncSession, cohort_id: uuid.UUID) -> list[CoachingSession]:
    result = await db.execute(
        select(CoachingSession)
        .where(CoachingSession.cohort_id == cohort_id)
        .order_by(CoachingSession.session_datetime.desc())
    )
    return list(result.scalars().all())


async def get_upcoming_sessions(
    db: AsyncSession, enrollment_id: uuid.UUID, now: Optional[datetime] = None
) -> list[CoachingSession]:
    now = now or utc_now()
    result = await db.execute(
        select(CoachingSession)
        .where(
            CoachingSession.mentor_enrollment_id == enrollment_id,
            CoachingSession.session_status == SessionStatus.SCHEDULED,
            CoachingSession.session_datetime >= now,
        )
        .order_by(CoachingSession.session_datetime.asc())
    )
    return list(result.scalars().all())


async def get_past_sessions(
    db: AsyncSession, enrollment_id: uuid.UUID, now: Optional[datetime] = None
) -> list[CoachingSession]:
    now = now or utc_now()
    result = await db.execute(
        select(CoachingSession)
        .where(
            CoachingSession.mentor_enrollment_id == enrollment_id,
            or_(
                CoachingSession.session_status.in_(list(TERMINAL_SESSION_STATUSES)),
                CoachingSession.session_datetime < now,
            ),
        )
        .order_by(CoachingSession.session_datetime.desc())
    )
    return list(result.scalars().all())


def is_cancellation_allowed(cohort: Optional[Cohort]) -> bool:
    if cohort is None:
        return True
    return bool(cohort.get_setting("coaching_allow_cancellation", True))


async def create_session(
    db: AsyncSession,
    *,
    cohort_id: Optional[uuid.UUID],
    mentor_enrollment_id: Optional[uuid.UUID],
    actor_user_id: str,
    coach_user_id: Optional[str] = None,
    session_title: Optional[str] = None,
    meeting_url: Optional[str] = None,
    location: Optional[str] = None,
    session_datetime: Optional[datetime] = None,
    notes: Optional[str] = None,
    rescheduled_from_session_id: Optional[uuid.UUID] = None,
    commit: bool = True,
) -> CoachingSession:
    if not cohort_id:
        raise HTTPException(status_code=400, detail="Cohort is required.")
    if not mentor_enrollment_id:
        raise HTTPException(status_code=400, detail="Participant is required.")

    session = CoachingSession(
        cohort_id=cohort_id,
        coach_user_id=coach_user_id or actor_user_id,
        mentor_enrollment_id=mentor_enrollment_id,
        session_title=session_title or None,
        meeting_url=meeting_url or None,
        location=location or None,
        session_datetime=ensure_utc(session_datetime),
        notes=notes or None,
        session_status=SessionStatus.SCHEDULED,
        attendance_status=AttendanceStatus.UNKNOWN,
        rescheduled_from_session_id=rescheduled_from_session_id,
    )
    db.add(session)
    await db.flush()

    audit.log(
        db,
        "coaching_session.created",
        actor_user_id=actor_user_id,
        cohort_id=cohort_id,
        entity_type="coaching_session",
        entity_id=session.id,
        after_data={
            "cohort_id": cohort_id,
            "coach_user_id": session.coach_user_id,
            "mentor_enrollment_id": mentor_enrollment_id,
            "session_title": session.session_title,
            "session_datetime": session.session_datetime,
        },
    )
    if commit:
        await db.commit()
        await db.refresh(session)
    logger.info("Coaching session %s scheduled for enrollment %s", session.id, mentor_enrollment_id)
    return session


async def update_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    changes: dict,
    *,
    actor_user_id: Optional[str] = None,
) -> CoachingSession:
    """Edit title, link, location, notes or time. Only scheduled sessions can move."""
    session = await get_session(db, session_id)
    if "session_datetime" in changes:
        if session.session_status in TERMINAL_SESSION_STATUSES:
            raise HTTPException(
                status_code=400, detail="Only scheduled sessions can change date and time."
            )
        changes["session_datetime"] = ensure_utc(changes["session_datetime"])
    for field in ("session_title", "meeting_url", "location", "notes"):
        if field in changes:
            changes[field] = (changes[field] or "").strip() or None

    before, after = audit.apply_changes(session, changes)
    if after:
        audit.log(
            db,
            "coaching_session.updated",
            actor_user_id=actor_user_id,
            cohort_id=session.cohort_id,
            entity_type="coaching_session",
            entity_id=session.id,
            before_data=before,
            after_data=after,
        )
    await db.commit()
    await db.refresh(session)
    return session


async def update_coaching_activity_state(
    db: AsyncSession, enrollment_id: uuid.UUID, cohort_id: uuid.UUID
) -> None:
    """Coaching attendance activities are complete once any session was attended."""
    result = await db.execute(
        select(Activity.id).where(
            Activity.cohort_id == cohort_id,
            Activity.activity_type == ActivityType.COACHING_SESSION_ATTENDANCE,
            Activity.status == ActivityStatus.ACTIVE,
        )
    )
    activity_ids = result.scalars().all()
    if not activity_ids:
        return

    attended = (
        await db.execute(
            select(func.count(CoachingSession.id)).where(
                CoachingSession.mentor_enrollment_id == enrollment_id,
                CoachingSession.cohort_id == cohort_id,
                or_(
                    CoachingSession.session_status == SessionStatus.ATTENDED,
                    CoachingSession.attendance_status == AttendanceStatus.ATTENDED,
                ),
            )
        )
    ).scalar_one()

    percent = 100 if attended > 0 else 0
    for activity_id in activity_ids:
        await progress.upsert_activity_state(
            db, enrollment_id=enrollment_id, activity_id=activity_id, percent=percent
        )
    await db.flush()
    await reporting.compute_rollups(db, enrollment_id)


async def transition_status(
    db: AsyncSession,
    session_id: uuid.UUID,
    new_status: SessionStatus | str,
    *,
    actor_user_id: Optional[str] = None,
    commit: bool = True,
) -> CoachingSession:
    try:
        new_status = SessionStatus(new_status)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid session status.")

    session = await get_session(db, session_id)
    current = session.session_status or SessionStatus.SCHEDULED
    if current in TERMINAL_SESSION_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f'Cannot change status from "{current.value}": it is a terminal state.',
        )

    session.session_status = new_status
    if new_status in _ATTENDANCE_FOR_STATUS:
        session.attendance_status = _ATTENDANCE_FOR_STATUS[new_status]
    if new_status == SessionStatus.CANCELLED:
        session.cancelled_at = utc_now()
    await db.flush()

    if new_status == SessionStatus.ATTENDED:
        await update_coaching_activity_state(db, session.mentor_enrollment_id, session.cohort_id)

    audit.log(
        db,
        "coaching_session.status_changed",
        actor_user_id=actor_user_id,
        cohort_id=session.cohort_id,
        entity_type="coaching_session",
        entity_id=session.id,
        before_data={"session_status": current},
        after_data={"session_status": new_status},
    )
    if commit:
        await db.commit()
        await db.refresh(session)
    logger.info("Coaching session %s: %s -> %s", session.id, current.value, new_status.value)
    return session


async def mark_attendance(
    db: AsyncSession,
    session_id: uuid.UUID,
    attendance_status: AttendanceStatus | str,
    *,
    actor_user_id: Optional[str] = None,
) -> CoachingSession:
    """Record attendance directly, keeping ``session_status`` in step."""
    try:
        attendance_status = AttendanceStatus(attendance_status)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid attendance status.")

    session = await get_session(db, session_id)
    session.attendance_status = attendance_status
    session.session_status = _STATUS_FOR_ATTENDANCE[attendance_status]
    await db.flush()

    if attendance_status == AttendanceStatus.ATTENDED:
        await update_coaching_activity_state(db, session.mentor_enrollment_id, session.cohort_id)

    audit.log(
        db,
        "coaching_session.attendance_marked",
        actor_user_id=actor_user_id,
        cohort_id=session.cohort_id,
        entity_type="coaching_session",
        entity_id=session.id,
        after_data={"attendance_status": attendance_status},
    )
    await db.commit()
    await db.refresh(session)
    return session


async def cancel_session(
    db: AsyncSession, session_id: uuid.UUID, *, actor_user_id: Optional[str] = None
) -> CoachingSession:
    return await transition_status(
        db, session_id, SessionStatus.CANCELLED, actor_user_id=actor_user_id
    )


async def reschedule_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    new_datetime: datetime,
    *,
    new_meeting_url: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> CoachingSession:
    """Close ``session_id`` as rescheduled and return the replacement session."""
    session = await get_session(db, session_id)
    if session.session_status in TERMINAL_SESSION_STATUSES:
        raise HTTPException(
            status_code=400, detail="Cannot reschedule a session that is not scheduled."
        )

    await transition_status(
        db, session_id, SessionStatus.RESCHEDULED, actor_user_id=actor_user_id, commit=False
    )
    replacement = await create_session(
        db,
        cohort_id=session.cohort_id,
        mentor_enrollment_id=session.mentor_enrollment_id,
        coach_user_id=session.coach_user_id,
        actor_user_id=actor_user_id or session.coach_user_id,
        session_title=session.session_title,
        meeting_url=new_meeting_url or session.meeting_url,
        location=session.location,
        session_datetime=new_datetime,
        rescheduled_from_session_id=session.id,
        commit=False,
    )
    await db.commit()
    await db.refresh(replacement)
    return replacement


async def get_session_enrollment(db: AsyncSession, session: CoachingSession) -> Optional[Enrollment]:
    return await db.get(Enrollment, session.mentor_enrollment_id)
