"""Scoped, paginated directory listings.

Every listing filters by the caller's ``Scope`` in SQL before paginating,
so page counts only ever reflect rows the caller may see. A non-admin
whose scope is empty gets an empty page, never the unfiltered table.
"""

import uuid
from typing import Any, Optional

from fastapi import HTTPException
from libs.common.logging import get_logger
from libs.common.pagination import build_page, paginate_list, paginate_query, resolve_page
from services.learning_service.models import (
    Activity,
    ActivityStatus,
    CoachingSession,
    Cohort,
    CohortStatus,
    CompletionRollup,
    Enrollment,
    EnrollmentStatus,
    OrgUnit,
    OrgUnitType,
    Pathway,
    SessionStatus,
    Team,
    TeamMembership,
)
from services.learning_service.schemas.listings import (
    CohortRow,
    DistrictRow,
    LearnerRow,
    PathwayRow,
    SchoolRow,
    SessionRow,
    TeamRow,
)
from services.learning_service.schemas.scope import Scope
from services.learning_service.services.pathways import role_label
from services.learning_service.services.views import parse_id
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ACCESS_DENIED = "You do not have access to this page."


def ensure_directory_access(scope: Scope) -> None:
    if not scope.is_staff and not scope.enrollment_ids:
        raise HTTPException(status_code=403, detail=ACCESS_DENIED)


def ensure_staff(scope: Scope) -> None:
    if not scope.is_staff:
        raise HTTPException(status_code=403, detail=ACCESS_DENIED)


def resolve_cohort_filter(
    hl_cohort_id: Optional[str], hl_track_id: Optional[str] = None
) -> Optional[uuid.UUID]:
    """``hl_track_id`` is the older name of the cohort filter."""
    return parse_id(hl_cohort_id) or parse_id(hl_track_id)


def _empty(paged: Any) -> dict:
    return build_page([], total=0, page=resolve_page(paged))


async def _names(db: AsyncSession, model, ids) -> dict[uuid.UUID, str]:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    rows = await db.execute(select(model.id, model.name).where(model.id.in_(ids)))
    return {row_id: name for row_id, name in rows.all()}


async def _counts(db: AsyncSession, column, group_ids, *where) -> dict[uuid.UUID, int]:
    if not group_ids:
        return {}
    rows = await db.execute(
        select(column, func.count()).where(column.in_(group_ids), *where).group_by(column)
    )
    return {key: count for key, count in rows.all()}


# ---------------------------------------------------------------------------
# Cohorts
# ---------------------------------------------------------------------------


async def list_cohorts(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    status: Optional[CohortStatus] = None,
) -> dict:
    ensure_directory_access(scope)
    query = select(Cohort)
    if not scope.is_admin:
        if not scope.cohort_ids:
            return _empty(paged)
        query = query.where(Cohort.id.in_(scope.cohort_ids))
    if status:
        query = query.where(Cohort.status == status)

    cohorts, total, page = await paginate_query(db, query.order_by(Cohort.name), paged)
    ids = [c.id for c in cohorts]
    participants = await _counts(
        db, Enrollment.cohort_id, ids, Enrollment.status == EnrollmentStatus.ACTIVE
    )
    schools: dict[uuid.UUID, int] = {}
    if ids:
        school_counts = await db.execute(
            select(Enrollment.cohort_id, func.count(func.distinct(Enrollment.school_id)))
            .where(Enrollment.cohort_id.in_(ids), Enrollment.school_id.is_not(None))
            .group_by(Enrollment.cohort_id)
        )
        schools = {cohort_id: count for cohort_id, count in school_counts.all()}

    items = [
        CohortRow(
            id=c.id,
            name=c.name,
            code=c.code,
            status=c.status,
            start_date=c.start_date,
            end_date=c.end_date,
            participant_count=participants.get(c.id, 0),
            school_count=schools.get(c.id, 0),
        )
        for c in cohorts
    ]
    return build_page(items, total=total, page=page)


# ---------------------------------------------------------------------------
# Learners
# ---------------------------------------------------------------------------


async def list_learners(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    cohort_id: Optional[uuid.UUID] = None,
    school_id: Optional[uuid.UUID] = None,
    role: Optional[str] = None,
) -> dict:
    """Active enrollments. Mentors without a leader role see only their team members."""
    ensure_directory_access(scope)
    query = select(Enrollment).where(Enrollment.status == EnrollmentStatus.ACTIVE)

    if not scope.is_admin:
        if scope.is_mentor_only and scope.team_ids:
            members = select(TeamMembership.enrollment_id).where(
                TeamMembership.team_id.in_(scope.team_ids)
            )
            query = query.where(Enrollment.id.in_(members))
        elif scope.cohort_ids:
            query = query.where(Enrollment.cohort_id.in_(scope.cohort_ids))
        else:
            return _empty(paged)

    if cohort_id:
        query = query.where(Enrollment.cohort_id == cohort_id)
    if school_id:
        query = query.where(Enrollment.school_id == school_id)

    query = query.order_by(Enrollment.display_name, Enrollment.user_id)
    if role:
        # Roles live in a JSON list; filter in Python, then paginate.
        result = await db.execute(query)
        matching = [e for e in result.scalars().all() if e.has_role(role)]
        window = paginate_list(matching, paged)
        enrollments, total, page = window["items"], window["total"], window["page"]
    else:
        enrollments, total, page = await paginate_query(db, query, paged)

    cohort_names = await _names(db, Cohort, [e.cohort_id for e in enrollments])
    school_names = await _names(db, OrgUnit, [e.school_id for e in enrollments])
    percents = {}
    if enrollments:
        rollups = await db.execute(
            select(CompletionRollup.enrollment_id, CompletionRollup.cohort_completion_percent).where(
                CompletionRollup.enrollment_id.in_([e.id for e in enrollments])
            )
        )
        percents = {eid: pct for eid, pct in rollups.all()}

    items = [
        LearnerRow(
            enrollment_id=e.id,
            user_id=e.user_id,
            display_name=e.display_name,
            email=e.email,
            roles=list(e.roles or []),
            roles_display=", ".join(role_label(r) for r in e.roles or []),
            cohort_id=e.cohort_id,
            cohort_name=cohort_names.get(e.cohort_id),
            school_id=e.school_id,
            school_name=school_names.get(e.school_id),
            completion_percent=round(float(percents.get(e.id) or 0)),
        )
        for e in enrollments
    ]
    return build_page(items, total=total, page=page)


# ---------------------------------------------------------------------------
# Districts and schools
# ---------------------------------------------------------------------------


async def list_districts(db: AsyncSession, scope: Scope, *, paged: Any = None) -> dict:
    ensure_directory_access(scope)
    query = select(OrgUnit).where(OrgUnit.orgunit_type == OrgUnitType.DISTRICT)
    if not scope.is_admin:
        if not scope.district_ids:
            return _empty(paged)
        query = query.where(OrgUnit.id.in_(scope.district_ids))

    districts, total, page = await paginate_query(db, query.order_by(OrgUnit.name), paged)
    ids = [d.id for d in districts]
    schools = await _counts(
        db, OrgUnit.parent_orgunit_id, ids, OrgUnit.orgunit_type == OrgUnitType.SCHOOL
    )
    cohorts = await _counts(db, Cohort.district_id, ids, Cohort.status == CohortStatus.ACTIVE)

    items = [
        DistrictRow(
            id=d.id,
            name=d.name,
            code=d.code,
            school_count=schools.get(d.id, 0),
            active_cohort_count=cohorts.get(d.id, 0),
        )
        for d in districts
    ]
    return build_page(items, total=total, page=page)


async def school_leader_names(
    db: AsyncSession, school_ids: list[uuid.UUID]
) -> dict[uuid.UUID, list[str]]:
    if not school_ids:
        return {}
    result = await db.execute(
        select(Enrollment)
        .where(
            Enrollment.school_id.in_(school_ids),
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
        .order_by(Enrollment.display_name)
    )
    leaders: dict[uuid.UUID, list[str]] = {}
    for enrollment in result.scalars().all():
        if enrollment.has_role("school_leader"):
            name = enrollment.display_name or enrollment.user_id
            names = leaders.setdefault(enrollment.school_id, [])
            if name not in names:
                names.append(name)
    return leaders


async def school_rows(db: AsyncSession, schools: list[OrgUnit]) -> list[SchoolRow]:
    district_names = await _names(db, OrgUnit, [s.parent_orgunit_id for s in schools])
    leaders = await school_leader_names(db, [s.id for s in schools])
    return [
        SchoolRow(
            id=s.id,
            name=s.name,
            code=s.code,
            district_id=s.parent_orgunit_id,
            district_name=district_names.get(s.parent_orgunit_id),
            leader_names=leaders.get(s.id, []),
        )
        for s in schools
    ]


async def list_schools(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    district_id: Optional[uuid.UUID] = None,
) -> dict:
    ensure_directory_access(scope)
    query = select(OrgUnit).where(OrgUnit.orgunit_type == OrgUnitType.SCHOOL)
    if not scope.is_admin:
        if not scope.school_ids:
            return _empty(paged)
        query = query.where(OrgUnit.id.in_(scope.school_ids))
    if district_id:
        query = query.where(OrgUnit.parent_orgunit_id == district_id)

    schools, total, page = await paginate_query(db, query.order_by(OrgUnit.name), paged)
    return build_page(await school_rows(db, schools), total=total, page=page)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


async def team_rows(db: AsyncSession, teams: list[Team]) -> list[TeamRow]:
    ids = [t.id for t in teams]
    members = await _counts(db, TeamMembership.team_id, ids)
    cohort_names = await _names(db, Cohort, [t.cohort_id for t in teams])
    school_names = await _names(db, OrgUnit, [t.school_id for t in teams])
    return [
        TeamRow(
            id=t.id,
            name=t.name,
            cohort_id=t.cohort_id,
            cohort_name=cohort_names.get(t.cohort_id),
            school_id=t.school_id,
            school_name=school_names.get(t.school_id),
            member_count=members.get(t.id, 0),
        )
        for t in teams
    ]


async def list_teams(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    cohort_id: Optional[uuid.UUID] = None,
) -> dict:
    ensure_directory_access(scope)
    query = select(Team)
    if not scope.is_admin:
        if scope.is_mentor_only:
            if not scope.team_ids:
                return _empty(paged)
            query = query.where(Team.id.in_(scope.team_ids))
        elif scope.cohort_ids:
            query = query.where(Team.cohort_id.in_(scope.cohort_ids))
        else:
            return _empty(paged)
    if cohort_id:
        query = query.where(Team.cohort_id == cohort_id)

    teams, total, page = await paginate_query(db, query.order_by(Team.name), paged)
    return build_page(await team_rows(db, teams), total=total, page=page)


# ---------------------------------------------------------------------------
# Pathways
# ---------------------------------------------------------------------------


async def list_pathways(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    cohort_id: Optional[uuid.UUID] = None,
) -> dict:
    """Staff-only pathway browser."""
    ensure_staff(scope)
    query = select(Pathway)
    if not scope.is_admin:
        if not scope.cohort_ids:
            return _empty(paged)
        query = query.where(Pathway.cohort_id.in_(scope.cohort_ids))
    if cohort_id:
        query = query.where(Pathway.cohort_id == cohort_id)

    rows, total, page = await paginate_query(db, query.order_by(Pathway.name), paged)
    ids = [p.id for p in rows]
    activities = await _counts(
        db, Activity.pathway_id, ids, Activity.status == ActivityStatus.ACTIVE
    )
    cohort_names = await _names(db, Cohort, [p.cohort_id for p in rows])

    items = [
        PathwayRow(
            id=p.id,
            name=p.name,
            code=p.code,
            cohort_id=p.cohort_id,
            cohort_name=cohort_names.get(p.cohort_id),
            target_roles=list(p.target_roles or []),
            activity_count=activities.get(p.id, 0),
            avg_completion_time=p.avg_completion_time,
        )
        for p in rows
    ]
    return build_page(items, total=total, page=page)


# ---------------------------------------------------------------------------
# Coaching hub
# ---------------------------------------------------------------------------


async def list_coaching_sessions(
    db: AsyncSession,
    scope: Scope,
    *,
    paged: Any = None,
    cohort_id: Optional[uuid.UUID] = None,
    status: Optional[SessionStatus] = None,
) -> dict:
    """Coaches see their cohorts' sessions (or their own); participants see their own."""
    ensure_directory_access(scope)
    query = select(CoachingSession)
    if not scope.is_admin:
        if scope.is_coach:
            if scope.cohort_ids:
                query = query.where(CoachingSession.cohort_id.in_(scope.cohort_ids))
            else:
                query = query.where(CoachingSession.coach_user_id == scope.user_id)
        elif scope.enrollment_ids:
            query = query.where(CoachingSession.mentor_enrollment_id.in_(scope.enrollment_ids))
        else:
            return _empty(paged)
    if cohort_id:
        query = query.where(CoachingSession.cohort_id == cohort_id)
    if status:
        query = query.where(CoachingSession.session_status == status)

    sessions, total, page = await paginate_query(
        db, query.order_by(CoachingSession.session_datetime.desc()), paged
    )
    participants = {}
    enrollment_ids = {s.mentor_enrollment_id for s in sessions}
    if enrollment_ids:
        rows = await db.execute(
            select(Enrollment.id, Enrollment.display_name, Enrollment.user_id).where(
                Enrollment.id.in_(enrollment_ids)
            )
        )
        participants = {eid: name or user_id for eid, name, user_id in rows.all()}

    items = [
        SessionRow(
            id=s.id,
            cohort_id=s.cohort_id,
            session_title=s.session_title or "Coaching Session",
            session_datetime=s.session_datetime,
            session_status=s.session_status,
            meeting_url=s.meeting_url,
            coach_user_id=s.coach_user_id,
            mentor_enrollment_id=s.mentor_enrollment_id,
            participant_name=participants.get(s.mentor_enrollment_id),
        )
        for s in sessions
    ]
    return build_page(items, total=total, page=page)
