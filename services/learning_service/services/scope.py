"""Role-derived visibility.

Admins see everything. Coaches see the cohorts and schools of their active
assignments plus their own enrollments. Everyone else sees what their active
enrollments reach: district leaders get every school of their district,
and team ids come from team memberships.
"""

import uuid
from typing import Any, Iterable, Optional, Sequence

from libs.auth.models import AuthUser
from libs.common.datetime_utils import utc_today
from libs.common.logging import get_logger
from services.learning_service.models import (
    CoachAssignment,
    CoachScopeType,
    Enrollment,
    EnrollmentStatus,
    OrgUnit,
    OrgUnitType,
    Team,
    TeamMembership,
)
from services.learning_service.schemas.scope import Scope
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _unique(values: Iterable) -> list:
    seen = []
    for value in values:
        if value is not None and value not in seen:
            seen.append(value)
    return seen


async def _active_enrollments(db: AsyncSession, user_id: str) -> Sequence[Enrollment]:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
    )
    return result.scalars().all()


async def _coach_scope(db: AsyncSession, scope: Scope) -> Scope:
    today = utc_today()
    result = await db.execute(
        select(CoachAssignment).where(
            CoachAssignment.coach_user_id == scope.user_id,
            CoachAssignment.effective_from <= today,
            or_(CoachAssignment.effective_to.is_(None), CoachAssignment.effective_to >= today),
        )
    )
    cohort_ids: list[uuid.UUID] = []
    school_ids: list[Optional[uuid.UUID]] = []

    for assignment in result.scalars().all():
        cohort_ids.append(assignment.cohort_id)
        if assignment.scope_type == CoachScopeType.SCHOOL:
            school_ids.append(assignment.scope_id)
        elif assignment.scope_type == CoachScopeType.TEAM:
            team = await db.get(Team, assignment.scope_id)
            school_ids.append(team.school_id if team else None)
        elif assignment.scope_type == CoachScopeType.ENROLLMENT:
            enrollment = await db.get(Enrollment, assignment.scope_id)
            school_ids.append(enrollment.school_id if enrollment else None)

    roles: list[str] = []
    for enrollment in await _active_enrollments(db, scope.user_id):
        scope.enrollment_ids.append(enrollment.id)
        cohort_ids.append(enrollment.cohort_id)
        school_ids.append(enrollment.school_id)
        roles.extend(enrollment.roles or [])

    scope.school_ids = _unique(school_ids)
    if scope.school_ids:
        parents = await db.execute(
            select(OrgUnit.parent_orgunit_id).where(
                OrgUnit.id.in_(scope.school_ids),
                OrgUnit.parent_orgunit_id.is_not(None),
            )
        )
        scope.district_ids = _unique(parents.scalars().all())

    scope.cohort_ids = _unique(cohort_ids)
    scope.enrollment_ids = _unique(scope.enrollment_ids)
    scope.hl_roles = _unique(roles)
    return scope


async def _enrollment_scope(db: AsyncSession, scope: Scope) -> Scope:
    enrollments = await _active_enrollments(db, scope.user_id)
    if not enrollments:
        return scope

    roles: list[str] = []
    cohort_ids: list[uuid.UUID] = []
    school_ids: list[Optional[uuid.UUID]] = []
    district_ids: list[Optional[uuid.UUID]] = []
    enrollment_ids: list[uuid.UUID] = []

    for enrollment in enrollments:
        enrollment_ids.append(enrollment.id)
        cohort_ids.append(enrollment.cohort_id)
        school_ids.append(enrollment.school_id)
        roles.extend(enrollment.roles or [])

        if enrollment.has_role("district_leader"):
            district_id = enrollment.district_id
            if district_id is None and enrollment.school_id:
                school = await db.get(OrgUnit, enrollment.school_id)
                district_id = school.parent_orgunit_id if school else None
            district_ids.append(district_id)

    scope.district_ids = _unique(district_ids)
    if scope.district_ids:
        district_schools = await db.execute(
            select(OrgUnit.id).where(
                OrgUnit.parent_orgunit_id.in_(scope.district_ids),
                OrgUnit.orgunit_type == OrgUnitType.SCHOOL,
            )
        )
        school_ids.extend(district_schools.scalars().all())

    teams = await db.execute(
        select(TeamMembership.team_id).where(TeamMembership.enrollment_id.in_(enrollment_ids))
    )

    scope.hl_roles = _unique(roles)
    scope.cohort_ids = _unique(cohort_ids)
    scope.school_ids = _unique(school_ids)
    scope.team_ids = _unique(teams.scalars().all())
    scope.enrollment_ids = _unique(enrollment_ids)
    return scope


async def get_scope(db: AsyncSession, user: AuthUser) -> Scope:
    scope = Scope(
        user_id=user.user_id,
        is_admin=user.is_admin,
        is_staff=user.is_staff,
        is_coach=user.is_staff and not user.is_admin,
    )
    if scope.is_admin:
        return scope
    if scope.is_staff:
        scope = await _coach_scope(db, scope)
    else:
        scope = await _enrollment_scope(db, scope)
    logger.debug(
        "Scope for %s: %s cohorts, %s schools, %s teams",
        user.user_id,
        len(scope.cohort_ids),
        len(scope.school_ids),
        len(scope.team_ids),
    )
    return scope


def filter_by_ids(
    items: Sequence[Any], key: str, allowed: Sequence[uuid.UUID], is_admin: bool = False
) -> list:
    """Keep items whose ``key`` is in ``allowed``.

    Admins get everything; anyone else with an empty ``allowed`` gets nothing.
    """
    if is_admin:
        return list(items)
    if not allowed:
        return []
    allowed_set = set(allowed)

    def _value(item):
        if isinstance(item, dict):
            return item.get(key)
        return getattr(item, key, None)

    return [item for item in items if _value(item) in allowed_set]
