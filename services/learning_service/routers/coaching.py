"""Coach assignments (admin) and coaching-hub session actions (staff)."""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin, require_staff
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.models import Enrollment
from services.learning_service.routers._shared import current_scope
from services.learning_service.schemas.coaching import (
    CoachAssignmentCreate,
    CoachAssignmentEnd,
    CoachAssignmentResponse,
    CoachingSessionCreate,
    CoachingSessionResponse,
    CoachingSessionUpdate,
    SessionAttendanceUpdate,
    SessionReschedule,
    SessionStatusUpdate,
)
from services.learning_service.schemas.scope import Scope
from services.learning_service.services import coach_assignments, coaching
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["learning-coaching"])
logger = get_logger(__name__)


def _ensure_cohort_access(scope: Scope, cohort_id: uuid.UUID) -> None:
    if not scope.can_view_cohort(cohort_id):
        raise HTTPException(status_code=403, detail="You do not have access to this cohort.")


# --- Coach Assignments ---


@router.get("/admin/coach-assignments", response_model=List[CoachAssignmentResponse])
async def list_coach_assignments(
    cohort_id: Optional[uuid.UUID] = Query(None),
    coach_user_id: Optional[str] = Query(None),
    active_only: bool = False,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coach_assignments.list_assignments(
        db, cohort_id=cohort_id, coach_user_id=coach_user_id, active_only=active_only
    )


@router.post(
    "/admin/coach-assignments",
    response_model=CoachAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_coach(
    assignment_in: CoachAssignmentCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coach_assignments.assign_coach(
        db, assignment_in=assignment_in, actor_user_id=current_user.user_id
    )


@router.post(
    "/admin/coach-assignments/{assignment_id}/end", response_model=CoachAssignmentResponse
)
async def end_coach_assignment(
    assignment_id: uuid.UUID,
    end_in: CoachAssignmentEnd,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await coach_assignments.end_assignment(
        db, assignment_id, end_date=end_in.end_date, actor_user_id=current_user.user_id
    )


# --- Coaching Hub ---


@router.get("/coaching/sessions", response_model=List[CoachingSessionResponse])
async def list_cohort_sessions(
    cohort_id: uuid.UUID,
    _: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    _ensure_cohort_access(scope, cohort_id)
    return await coaching.list_cohort_sessions(db, cohort_id)


@router.post(
    "/coaching/sessions",
    response_model=CoachingSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    session_in: CoachingSessionCreate,
    current_user: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    _ensure_cohort_access(scope, session_in.cohort_id)
    enrollment = await db.get(Enrollment, session_in.mentor_enrollment_id)
    if enrollment is None or enrollment.cohort_id != session_in.cohort_id:
        raise HTTPException(status_code=404, detail="Participant not found in this cohort.")

    return await coaching.create_session(
        db, actor_user_id=current_user.user_id, **session_in.model_dump()
    )


@router.post("/coaching/sessions/{session_id}/status", response_model=CoachingSessionResponse)
async def update_session_status(
    session_id: uuid.UUID,
    status_in: SessionStatusUpdate,
    current_user: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    session = await coaching.get_session(db, session_id)
    _ensure_cohort_access(scope, session.cohort_id)
    return await coaching.transition_status(
        db, session_id, status_in.session_status, actor_user_id=current_user.user_id
    )


@router.post(
    "/coaching/sessions/{session_id}/attendance", response_model=CoachingSessionResponse
)
async def mark_attendance(
    session_id: uuid.UUID,
    attendance_in: SessionAttendanceUpdate,
    current_user: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    session = await coaching.get_session(db, session_id)
    _ensure_cohort_access(scope, session.cohort_id)
    return await coaching.mark_attendance(
        db, session_id, attendance_in.attendance_status, actor_user_id=current_user.user_id
    )


@router.post(
    "/coaching/sessions/{session_id}/reschedule", response_model=CoachingSessionResponse
)
async def reschedule_session(
    session_id: uuid.UUID,
    reschedule_in: SessionReschedule,
    current_user: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    session = await coaching.get_session(db, session_id)
    _ensure_cohort_access(scope, session.cohort_id)
    return await coaching.reschedule_session(
        db,
        session_id,
        reschedule_in.new_datetime,
        new_meeting_url=reschedule_in.meeting_url,
        actor_user_id=current_user.user_id,
    )


@router.patch("/coaching/sessions/{session_id}", response_model=CoachingSessionResponse)
async def update_session(
    session_id: uuid.UUID,
    session_in: CoachingSessionUpdate,
    current_user: AuthUser = Depends(require_staff),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    session = await coaching.get_session(db, session_id)
    _ensure_cohort_access(scope, session.cohort_id)
    return await coaching.update_session(
        db,
        session_id,
        session_in.model_dump(exclude_unset=True),
        actor_user_id=current_user.user_id,
    )
