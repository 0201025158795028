"""Coach assignments: who coaches a school, a team or a single enrollment."""

import uuid
from datetime import date
from typing import Optional

from fastapi import HTTPException
from libs.common.datetime_utils import utc_today
from libs.common.logging import get_logger
from services.learning_service.models import (
    CoachAssignment,
    CoachScopeType,
    Enrollment,
    OrgUnit,
    Team,
    TeamMembership,
)
from services.learning_service.services import audit
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _active_on(day: date):
    return (
        CoachAssignment.effective_from <= day,
        or_(CoachAssignment.effective_to.is_(None), CoachAssignment.effective_to >= day),
    )


async def _latest_assignment(
    db: AsyncSession, cohort_id: uuid.UUID, scope_type: CoachScopeType, scope_id: uuid.UUID, day: date
) -> Optional[CoachAssignment]:
    result = await db.execute(
        select(CoachAssignment)
        .where(
            CoachAssignment.cohort_id == cohort_id,
            CoachAssignment.scope_type == scope_type,
            CoachAssignment.scope_id == scope_id,
            *_active_on(day),
        )
        .order_by(CoachAssignment.effective_from.desc(), CoachAssignment.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_coach_for_enrollment(
    db: AsyncSession, enrollment: Enrollment, day: Optional[date] = None
) -> Optional[CoachAssignment]:
    """Most specific active assignment: enrollment, then team, then school."""
    day = day or utc_today()

    assignment = await _latest_assignment(
        db, enrollment.cohort_id, CoachScopeType.ENROLLMENT, enrollment.id, day
    )
    if assignment:
        return assignment

    team_ids = await db.execute(
        select(TeamMembership.team_id)
        .join(Team, Team.id == TeamMembership.team_id)
        .where(TeamMembership.enrollment_id == enrollment.id, Team.cohort_id == enrollment.cohort_id)
    )
    for team_id in team_ids.scalars().all():
        assignment = await _latest_assignment(
            db, enrollment.cohort_id, CoachScopeType.TEAM, team_id, day
        )
        if assignment:
            return assignment

    if enrollment.school_id:
        return await _latest_assignment(
            db, enrollment.cohort_id, CoachScopeType.SCHOOL, enrollment.school_id, day
        )
    return None


async def list_assignments(
    db: AsyncSession,
    *,
    cohort_id: Optional[uuid.UUID] = None,
    coach_user_id: Optional[str] = None,
    active_only: bool = False,
) -> list[CoachAssignment]:
    query = select(CoachAssignment)
    if cohort_id:
        query = query.where(CoachAssignment.cohort_id == cohort_id)
    if coach_user_id:
        query = query.where(CoachAssignment.coach_user_id == coach_user_id)
    if active_only:
        query = query.where(*_active_on(utc_today()))
    result = await db.execute(query.order_by(CoachAssignment.effective_from.desc()))
    return list(result.scalars().all())


async def _scope_exists(db: AsyncSession, scope_type: CoachScopeType, scope_id: uuid.UUID) -> bool:
    model = {
        CoachScopeType.SCHOOL: OrgUnit,
        CoachScopeType.TEAM: Team,
        CoachScopeType.ENROLLMENT: Enrollment,
    }[scope_type]
    return await db.get(model, scope_id) is not None


async def assign_coach(
    db: AsyncSession, *, assignment_in, actor_user_id: Optional[str] = None
) -> CoachAssignment:
    if assignment_in.effective_to and assignment_in.effective_to < assignment_in.effective_from:
        raise HTTPException(status_code=400, detail="effective_to is before effective_from")
    if not await _scope_exists(db, assignment_in.scope_type, assignment_in.scope_id):
        raise HTTPException(status_code=404, detail=f"{assignment_in.scope_type.value.title()} not found")

    assignment = CoachAssignment(**assignment_in.model_dump())
    db.add(assignment)
    await db.flush()
    audit.log(
        db,
        "coach_assignment.created",
        actor_user_id=actor_user_id,
        cohort_id=assignment.cohort_id,
        entity_type="coach_assignment",
        entity_id=assignment.id,
        after_data=assignment_in.model_dump(mode="json"),
    )
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def end_assignment(
    db: AsyncSession,
    assignment_id: uuid.UUID,
    *,
    end_date: Optional[date] = None,
    actor_user_id: Optional[str] = None,
) -> CoachAssignment:
    assignment = await db.get(CoachAssignment, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Coach assignment not found")

    end_date = end_date or utc_today()
    if end_date < assignment.effective_from:
        raise HTTPException(status_code=400, detail="End date is before the assignment starts")

    before = assignment.effective_to
    assignment.effective_to = end_date
    audit.log(
        db,
        "coach_assignment.ended",
        actor_user_id=actor_user_id,
        cohort_id=assignment.cohort_id,
        entity_type="coach_assignment",
        entity_id=assignment.id,
        before_data={"effective_to": before},
        after_data={"effective_to": end_date},
    )
    await db.commit()
    await db.refresh(assignment)
    return assignment
