"""Detail pages (cohort workspace, district, school, team, my team) and scoped reports."""

import uuid
from typing import Optional

from fastapi import HTTPException
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from services.learning_service.models import (
    Cohort,
    CohortStatus,
    Enrollment,
    EnrollmentStatus,
    OrgUnit,
    OrgUnitType,
    Pathway,
    Team,
    TeamMembership,
)
from services.learning_service.schemas.listings import (
    CohortSummary,
    CohortSummaryRow,
    CohortWorkspace,
    DistrictPage,
    LearnerRow,
    MemberRow,
    MyTeamPage,
    ParticipantReport,
    ParticipantReportRow,
    SchoolPage,
    TeamPage,
    TeamSummaryRow,
)
from services.learning_service.schemas.scope import Scope
from services.learning_service.services import reporting, teams
from services.learning_service.services.listings import school_rows, team_rows
from services.learning_service.services.pathways import role_label
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _user_enrollments(
    db: AsyncSession, user_id: str, *, cohort_id: Optional[uuid.UUID] = None
) -> list[Enrollment]:
    query = select(Enrollment).where(
        Enrollment.user_id == user_id, Enrollment.status == EnrollmentStatus.ACTIVE
    )
    if cohort_id:
        query = query.where(Enrollment.cohort_id == cohort_id)
    return list((await db.execute(query)).scalars().all())


async def _district_schools(db: AsyncSession, district_id: uuid.UUID) -> list[OrgUnit]:
    result = await db.execute(
        select(OrgUnit)
        .where(
            OrgUnit.parent_orgunit_id == district_id,
            OrgUnit.orgunit_type == OrgUnitType.SCHOOL,
        )
        .order_by(OrgUnit.name)
    )
    return list(result.scalars().all())


async def _cohort_summaries(db: AsyncSession, cohort_ids) -> list[CohortSummaryRow]:
    cohort_ids = list({cid for cid in cohort_ids if cid})
    if not cohort_ids:
        return []
    cohorts = (
        await db.execute(
            select(Cohort)
            .where(Cohort.id.in_(cohort_ids), Cohort.status == CohortStatus.ACTIVE)
            .order_by(Cohort.name)
        )
    ).scalars().all()
    counts = dict(
        (
            await db.execute(
                select(Enrollment.cohort_id, func.count())
                .where(
                    Enrollment.cohort_id.in_(cohort_ids),
                    Enrollment.status == EnrollmentStatus.ACTIVE,
                )
                .group_by(Enrollment.cohort_id)
            )
        ).all()
    )
    return [
        CohortSummaryRow(
            id=c.id, name=c.name, status=c.status, participant_count=counts.get(c.id, 0)
        )
        for c in cohorts
    ]


# ---------------------------------------------------------------------------
# Cohort workspace
# ---------------------------------------------------------------------------


async def build_cohort_workspace(
    db: AsyncSession, user: AuthUser, scope: Scope, cohort_id: Optional[uuid.UUID]
) -> CohortWorkspace:
    if not cohort_id:
        raise HTTPException(status_code=400, detail="Invalid cohort link.")
    cohort = await db.get(Cohort, cohort_id)
    if cohort is None:
        raise HTTPException(status_code=404, detail="Cohort not found.")

    enrollment = None
    if not scope.is_staff:
        enrollments = await _user_enrollments(db, user.user_id, cohort_id=cohort.id)
        if not enrollments:
            raise HTTPException(status_code=403, detail="You do not have access to this cohort.")
        enrollment = enrollments[0]

    summary = await reporting.get_cohort_summary(db, cohort.id)
    team_summary = _scope_teams(scope, await reporting.get_team_summary(db, cohort.id))
    pathway_count = (
        await db.execute(select(func.count(Pathway.id)).where(Pathway.cohort_id == cohort.id))
    ).scalar_one()

    return CohortWorkspace(
        id=cohort.id,
        name=cohort.name,
        code=cohort.code,
        status=cohort.status,
        start_date=cohort.start_date,
        end_date=cohort.end_date,
        total_enrollments=summary["total_enrollments"],
        avg_completion_percent=summary["avg_completion_percent"],
        pathway_count=pathway_count,
        teams=[TeamSummaryRow(**row) for row in team_summary],
        school_id=enrollment.school_id if enrollment else None,
        district_id=enrollment.district_id if enrollment else cohort.district_id,
    )


# ---------------------------------------------------------------------------
# District and school pages
# ---------------------------------------------------------------------------


async def _is_district_leader_of(db: AsyncSession, user_id: str, district_id: uuid.UUID) -> bool:
    for enrollment in await _user_enrollments(db, user_id):
        if enrollment.has_role("district_leader") and enrollment.district_id == district_id:
            return True
    return False


async def build_district_page(
    db: AsyncSession, user: AuthUser, scope: Scope, district_id: Optional[uuid.UUID]
) -> DistrictPage:
    if not district_id:
        raise HTTPException(status_code=400, detail="Invalid district link.")
    district = await db.get(OrgUnit, district_id)
    if district is None or district.orgunit_type != OrgUnitType.DISTRICT:
        raise HTTPException(status_code=404, detail="District not found.")
    if not scope.is_staff and not await _is_district_leader_of(db, user.user_id, district.id):
        raise HTTPException(status_code=403, detail="You do not have access to this district.")

    schools = await _district_schools(db, district.id)
    school_ids = [s.id for s in schools]

    cohort_ids = set(
        (await db.execute(select(Cohort.id).where(Cohort.district_id == district.id))).scalars().all()
    )
    participant_query = select(func.count(Enrollment.id)).where(
        Enrollment.status == EnrollmentStatus.ACTIVE,
        (Enrollment.district_id == district.id) | Enrollment.school_id.in_(school_ids),
    )
    participants = (await db.execute(participant_query)).scalar_one()
    if school_ids:
        cohort_ids.update(
            (
                await db.execute(
                    select(Enrollment.cohort_id).where(Enrollment.school_id.in_(school_ids))
                )
            ).scalars().all()
        )

    return DistrictPage(
        id=district.id,
        name=district.name,
        code=district.code,
        cohorts=await _cohort_summaries(db, cohort_ids),
        schools=await school_rows(db, schools),
        participant_count=participants,
    )


async def _can_view_school(db: AsyncSession, user_id: str, school: OrgUnit) -> bool:
    for enrollment in await _user_enrollments(db, user_id):
        if enrollment.has_role("school_leader") and enrollment.school_id == school.id:
            return True
        if (
            enrollment.has_role("district_leader")
            and school.parent_orgunit_id
            and enrollment.district_id == school.parent_orgunit_id
        ):
            return True
    return False


async def build_school_page(
    db: AsyncSession, user: AuthUser, scope: Scope, school_id: Optional[uuid.UUID]
) -> SchoolPage:
    if not school_id:
        raise HTTPException(status_code=400, detail="Invalid school link.")
    school = await db.get(OrgUnit, school_id)
    if school is None or school.orgunit_type != OrgUnitType.SCHOOL:
        raise HTTPException(status_code=404, detail="School not found.")
    if not scope.is_staff and not await _can_view_school(db, user.user_id, school):
        raise HTTPException(status_code=403, detail="You do not have access to this school.")

    district = await db.get(OrgUnit, school.parent_orgunit_id) if school.parent_orgunit_id else None
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.school_id == school.id, Enrollment.status == EnrollmentStatus.ACTIVE)
        .order_by(Enrollment.display_name, Enrollment.user_id)
    )
    enrollments = result.scalars().all()
    cohorts = await _cohort_summaries(db, [e.cohort_id for e in enrollments])
    cohort_names = {c.id: c.name for c in cohorts}

    return SchoolPage(
        id=school.id,
        name=school.name,
        code=school.code,
        district_id=school.parent_orgunit_id,
        district_name=district.name if district else None,
        cohorts=cohorts,
        staff=[
            LearnerRow(
                enrollment_id=e.id,
                user_id=e.user_id,
                display_name=e.display_name,
                email=e.email,
                roles=list(e.roles or []),
                roles_display=", ".join(role_label(r) for r in e.roles or []),
                cohort_id=e.cohort_id,
                cohort_name=cohort_names.get(e.cohort_id),
                school_id=school.id,
                school_name=school.name,
            )
            for e in enrollments
        ],
    )


# ---------------------------------------------------------------------------
# Team pages
# ---------------------------------------------------------------------------


async def can_view_team(db: AsyncSession, user: AuthUser, scope: Scope, team: Team) -> bool:
    """Staff, team members, and leaders whose school or district covers the team."""
    if scope.is_staff:
        return True
    if any(m.enrollment.user_id == user.user_id for m in team.memberships if m.enrollment):
        return True

    for enrollment in await _user_enrollments(db, user.user_id, cohort_id=team.cohort_id):
        if enrollment.has_role("school_leader") and enrollment.school_id:
            if team.school_id is None or enrollment.school_id == team.school_id:
                return True
        if enrollment.has_role("district_leader") and enrollment.district_id:
            if team.school_id is None:
                return True
            schools = await _district_schools(db, enrollment.district_id)
            if team.school_id in {s.id for s in schools}:
                return True
    return False


async def team_page_view(db: AsyncSession, team: Team) -> TeamPage:
    cohort = await db.get(Cohort, team.cohort_id)
    school = await db.get(OrgUnit, team.school_id) if team.school_id else None
    enrollment_ids = [m.enrollment_id for m in team.memberships]
    percents = await reporting.get_completion_map(db, enrollment_ids)

    members = []
    for membership in sorted(
        team.memberships,
        key=lambda m: (m.membership_type.value != "mentor", (m.enrollment.display_name or "") if m.enrollment else ""),
    ):
        enrollment = membership.enrollment
        if enrollment is None:
            continue
        members.append(
            MemberRow(
                enrollment_id=enrollment.id,
                user_id=enrollment.user_id,
                display_name=enrollment.display_name,
                email=enrollment.email,
                membership_type=membership.membership_type.value,
                roles=list(enrollment.roles or []),
                completion_percent=percents.get(enrollment.id, 0.0),
            )
        )

    average = round(sum(m.completion_percent for m in members) / len(members), 2) if members else 0.0
    return TeamPage(
        id=team.id,
        name=team.name,
        cohort_id=team.cohort_id,
        cohort_name=cohort.name if cohort else None,
        school_id=team.school_id,
        school_name=school.name if school else None,
        members=members,
        avg_completion_percent=average,
    )


async def build_team_page(
    db: AsyncSession, user: AuthUser, scope: Scope, team_id: Optional[uuid.UUID]
) -> TeamPage:
    if not team_id:
        raise HTTPException(status_code=400, detail="Invalid team link.")
    team = await teams.get_team(db, team_id)
    if not await can_view_team(db, user, scope, team):
        raise HTTPException(status_code=403, detail="You do not have access to this team.")
    return await team_page_view(db, team)


async def build_my_team(db: AsyncSession, user: AuthUser) -> MyTeamPage:
    """One team renders inline; several render as a picker."""
    result = await db.execute(
        select(Team)
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .join(Enrollment, Enrollment.id == TeamMembership.enrollment_id)
        .where(Enrollment.user_id == user.user_id, Enrollment.status == EnrollmentStatus.ACTIVE)
        .order_by(Team.name)
    )
    user_teams = list(dict.fromkeys(result.scalars().all()))
    if not user_teams:
        return MyTeamPage(empty_notice="You are not currently assigned to any team.")

    page = MyTeamPage(teams=await team_rows(db, user_teams))
    if len(user_teams) == 1:
        page.team = await team_page_view(db, await teams.get_team(db, user_teams[0].id))
    return page


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def _ensure_report_access(scope: Scope, cohort_id: Optional[uuid.UUID]) -> uuid.UUID:
    if not cohort_id:
        raise HTTPException(status_code=400, detail="Select a cohort to view this report.")
    allowed = scope.is_staff or any(
        scope.has_role(role) for role in ("mentor", "school_leader", "district_leader")
    )
    if not allowed or not scope.can_view_cohort(cohort_id):
        raise HTTPException(status_code=403, detail="You do not have access to this report.")
    return cohort_id


def _scope_rows(scope: Scope, rows: list[dict], members: set[uuid.UUID]) -> list[dict]:
    """Leaders see their schools; mentors without a leader role see their teams.

    District leaders hold every school in their district, so the school filter
    covers them too.
    """
    if scope.is_staff:
        return rows
    if scope.is_mentor_only:
        return [r for r in rows if r["enrollment_id"] in members]
    schools = set(scope.school_ids)
    return [r for r in rows if r["school_id"] in schools]


def _scope_teams(scope: Scope, rows: list[dict]) -> list[dict]:
    if scope.is_staff:
        return rows
    if scope.is_mentor_only:
        team_ids = set(scope.team_ids)
        return [r for r in rows if r["team_id"] in team_ids]
    schools = set(scope.school_ids)
    return [r for r in rows if r["school_id"] in schools]


async def build_participant_report(
    db: AsyncSession,
    scope: Scope,
    *,
    cohort_id: Optional[uuid.UUID],
    school_id: Optional[uuid.UUID] = None,
    district_id: Optional[uuid.UUID] = None,
    team_id: Optional[uuid.UUID] = None,
    role: Optional[str] = None,
    status: Optional[str] = "active",
) -> list[dict]:
    cohort_id = _ensure_report_access(scope, cohort_id)
    rows = await reporting.get_participant_report(
        db,
        cohort_id=cohort_id,
        school_id=school_id,
        district_id=district_id,
        team_id=team_id,
        role=role,
        status=status,
    )
    members = set(await teams.member_enrollment_ids(db, scope.team_ids))
    return _scope_rows(scope, rows, members)


def participant_report_model(cohort_id: uuid.UUID, rows: list[dict]) -> ParticipantReport:
    return ParticipantReport(
        cohort_id=cohort_id,
        rows=[ParticipantReportRow(**row) for row in rows],
    )


async def build_cohort_summary(
    db: AsyncSession, scope: Scope, cohort_id: Optional[uuid.UUID]
) -> CohortSummary:
    cohort_id = _ensure_report_access(scope, cohort_id)
    summary = await reporting.get_cohort_summary(db, cohort_id)
    team_summary = _scope_teams(scope, await reporting.get_team_summary(db, cohort_id))
    return CohortSummary(
        cohort_id=cohort_id,
        total_enrollments=summary["total_enrollments"],
        avg_completion_percent=summary["avg_completion_percent"],
        teams=[TeamSummaryRow(**row) for row in team_summary],
    )
