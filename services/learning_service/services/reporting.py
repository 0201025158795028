"""Completion rollups and reports."""

import csv
import io
import uuid
from typing import Iterable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityState,
    ActivityStatus,
    ActivityType,
    CompletionRollup,
    Enrollment,
    EnrollmentStatus,
    OrgUnit,
    Team,
    TeamMembership,
)
from services.learning_service.services import integrations
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Percent arithmetic
# ---------------------------------------------------------------------------


def overall_percent(entries: Iterable[tuple[float, float]]) -> int:
    """Weight-normalised completion of ``(weight, percent)`` pairs, 0-100.

    Negative weights count as zero. With no positive weight the result is 0.
    """
    total_weight = 0.0
    weighted_done = 0.0
    for weight, percent in entries:
        weight = max(float(weight or 0), 0.0)
        total_weight += weight
        weighted_done += weight * (float(percent or 0) / 100.0)

    if total_weight <= 0:
        return 0
    return max(0, min(100, round(weighted_done / total_weight * 100)))


def rollup_percent(entries: Iterable[tuple[float, float]]) -> float:
    """Stored rollup: non-positive weights count as 1, two decimals."""
    total_weight = 0.0
    weighted_sum = 0.0
    for weight, percent in entries:
        weight = float(weight or 0)
        if weight <= 0:
            weight = 1.0
        total_weight += weight
        weighted_sum += weight * float(percent or 0)
    return round(weighted_sum / total_weight, 2) if total_weight > 0 else 0.0


# ---------------------------------------------------------------------------
# Rollups
# ---------------------------------------------------------------------------


async def _live_percent(activity: Activity, enrollment: Enrollment) -> float:
    if activity.activity_type != ActivityType.LEARNDASH_COURSE:
        return 0.0
    course_id = integrations.course_id_from_ref(activity.external_ref)
    if not course_id:
        return 0.0
    return await integrations.get_course_progress_percent(enrollment.user_id, course_id)


async def _upsert_rollup(
    db: AsyncSession, enrollment: Enrollment, pathway_percent: float, cohort_percent: float
) -> CompletionRollup:
    result = await db.execute(
        select(CompletionRollup).where(CompletionRollup.enrollment_id == enrollment.id)
    )
    rollup = result.scalar_one_or_none()
    if rollup is None:
        rollup = CompletionRollup(enrollment_id=enrollment.id, cohort_id=enrollment.cohort_id)
        db.add(rollup)
    rollup.pathway_completion_percent = pathway_percent
    rollup.cohort_completion_percent = cohort_percent
    rollup.last_computed_at = utc_now()
    return rollup


async def compute_rollups(db: AsyncSession, enrollment_id: uuid.UUID) -> Optional[CompletionRollup]:
    """Recompute and store the rollup for one enrollment. None if it does not exist.

    Flushes but does not commit.
    """
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        return None

    if enrollment.assigned_pathway_id is None:
        # Nothing assigned, nothing to roll up.
        return CompletionRollup(
            enrollment_id=enrollment.id,
            cohort_id=enrollment.cohort_id,
            pathway_completion_percent=0.0,
            cohort_completion_percent=0.0,
        )

    result = await db.execute(
        select(Activity).where(
            Activity.pathway_id == enrollment.assigned_pathway_id,
            Activity.status == ActivityStatus.ACTIVE,
        )
    )
    activities = result.scalars().all()

    states_result = await db.execute(
        select(ActivityState).where(ActivityState.enrollment_id == enrollment.id)
    )
    states = {s.activity_id: s for s in states_result.scalars().all()}

    entries = []
    for activity in activities:
        state = states.get(activity.id)
        if state is not None:
            percent = state.completion_percent or 0
        else:
            percent = await _live_percent(activity, enrollment)
        entries.append((activity.weight, percent))

    pathway_percent = rollup_percent(entries)
    # One pathway per enrollment, so the cohort figure is the pathway figure.
    rollup = await _upsert_rollup(db, enrollment, pathway_percent, pathway_percent)
    await db.flush()
    return rollup


async def recompute_cohort_rollups(db: AsyncSession, cohort_id: uuid.UUID) -> dict:
    result = await db.execute(
        select(Enrollment.id).where(
            Enrollment.cohort_id == cohort_id,
            Enrollment.status == EnrollmentStatus.ACTIVE,
        )
    )
    updated = 0
    errors = 0
    for enrollment_id in result.scalars().all():
        try:
            rollup = await compute_rollups(db, enrollment_id)
        except Exception:
            logger.exception("Rollup failed for enrollment %s", enrollment_id)
            errors += 1
            continue
        if rollup is None:
            errors += 1
        else:
            updated += 1
    await db.commit()
    logger.info("Recomputed rollups for cohort %s: %s updated, %s errors", cohort_id, updated, errors)
    return {"updated": updated, "errors": errors}


async def get_enrollment_completion(db: AsyncSession, enrollment_id: uuid.UUID) -> float:
    result = await db.execute(
        select(CompletionRollup.cohort_completion_percent).where(
            CompletionRollup.enrollment_id == enrollment_id
        )
    )
    percent = result.scalar_one_or_none()
    if percent is not None:
        return float(percent)

    rollup = await compute_rollups(db, enrollment_id)
    return float(rollup.cohort_completion_percent) if rollup else 0.0


async def get_completion_map(
    db: AsyncSession, enrollment_ids: list[uuid.UUID]
) -> dict[uuid.UUID, float]:
    """Stored rollup percents keyed by enrollment id (missing -> absent)."""
    if not enrollment_ids:
        return {}
    result = await db.execute(
        select(CompletionRollup.enrollment_id, CompletionRollup.cohort_completion_percent).where(
            CompletionRollup.enrollment_id.in_(enrollment_ids)
        )
    )
    return {row[0]: float(row[1] or 0) for row in result.all()}


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


async def get_cohort_summary(db: AsyncSession, cohort_id: uuid.UUID) -> dict:
    total = (
        await db.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.cohort_id == cohort_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
    ).scalar_one()

    average = (
        await db.execute(
            select(func.avg(CompletionRollup.cohort_completion_percent))
            .join(Enrollment, Enrollment.id == CompletionRollup.enrollment_id)
            .where(
                Enrollment.cohort_id == cohort_id,
                Enrollment.status == EnrollmentStatus.ACTIVE,
            )
        )
    ).scalar_one_or_none()

    return {
        "cohort_id": cohort_id,
        "total_enrollments": total,
        "avg_completion_percent": round(float(average or 0), 2),
    }


async def get_participant_report(
    db: AsyncSession,
    *,
    cohort_id: uuid.UUID,
    school_id: Optional[uuid.UUID] = None,
    district_id: Optional[uuid.UUID] = None,
    team_id: Optional[uuid.UUID] = None,
    role: Optional[str] = None,
    status: Optional[str] = "active",
) -> list[dict]:
    """One row per enrollment of a cohort with school, team and completion."""
    query = select(Enrollment).where(Enrollment.cohort_id == cohort_id)
    if status in ("active", "inactive"):
        query = query.where(Enrollment.status == EnrollmentStatus(status))
    if school_id:
        query = query.where(Enrollment.school_id == school_id)
    if district_id:
        schools = select(OrgUnit.id).where(OrgUnit.parent_orgunit_id == district_id)
        query = query.where(
            (Enrollment.district_id == district_id) | Enrollment.school_id.in_(schools)
        )
    if team_id:
        members = select(TeamMembership.enrollment_id).where(TeamMembership.team_id == team_id)
        query = query.where(Enrollment.id.in_(members))

    result = await db.execute(query.order_by(Enrollment.display_name, Enrollment.user_id))
    enrollments = [e for e in result.scalars().all() if not role or e.has_role(role)]
    enrollment_ids = [e.id for e in enrollments]

    rollups: dict[uuid.UUID, CompletionRollup] = {}
    team_names: dict[uuid.UUID, str] = {}
    school_names: dict[uuid.UUID, str] = {}
    if enrollment_ids:
        rollup_rows = await db.execute(
            select(CompletionRollup).where(CompletionRollup.enrollment_id.in_(enrollment_ids))
        )
        rollups = {r.enrollment_id: r for r in rollup_rows.scalars().all()}

        team_rows = await db.execute(
            select(TeamMembership.enrollment_id, Team.name)
            .join(Team, Team.id == TeamMembership.team_id)
            .where(TeamMembership.enrollment_id.in_(enrollment_ids), Team.cohort_id == cohort_id)
        )
        team_names = {eid: name for eid, name in team_rows.all()}

        school_ids = {e.school_id for e in enrollments if e.school_id}
        if school_ids:
            school_rows = await db.execute(
                select(OrgUnit.id, OrgUnit.name).where(OrgUnit.id.in_(school_ids))
            )
            school_names = {sid: name for sid, name in school_rows.all()}

    rows = []
    for enrollment in enrollments:
        rollup = rollups.get(enrollment.id)
        rows.append(
            {
                "enrollment_id": enrollment.id,
                "user_id": enrollment.user_id,
                "display_name": enrollment.display_name,
                "email": enrollment.email,
                "roles": list(enrollment.roles or []),
                "school_id": enrollment.school_id,
                "school_name": school_names.get(enrollment.school_id, ""),
                "team_name": team_names.get(enrollment.id, ""),
                "cohort_completion_percent": rollup.cohort_completion_percent if rollup else 0.0,
                "pathway_completion_percent": rollup.pathway_completion_percent if rollup else 0.0,
            }
        )
    return rows


async def get_team_summary(db: AsyncSession, cohort_id: uuid.UUID) -> list[dict]:
    query = (
        select(
            Team.id,
            Team.name,
            Team.school_id,
            func.count(func.distinct(Enrollment.id)),
            func.avg(func.coalesce(CompletionRollup.cohort_completion_percent, 0)),
        )
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .join(Enrollment, Enrollment.id == TeamMembership.enrollment_id)
        .outerjoin(CompletionRollup, CompletionRollup.enrollment_id == Enrollment.id)
        .where(Team.cohort_id == cohort_id, Enrollment.status == EnrollmentStatus.ACTIVE)
        .group_by(Team.id, Team.name, Team.school_id)
        .order_by(Team.name)
    )
    result = await db.execute(query)
    return [
        {
            "team_id": team_id,
            "team_name": name,
            "school_id": school_id,
            "member_count": count,
            "avg_completion_percent": round(float(avg or 0), 2),
        }
        for team_id, name, school_id, count, avg in result.all()
    ]


def participant_report_csv(rows: list[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(
        ["Name", "Email", "Roles", "School", "Team", "Completion %"]
    )
    for row in rows:
        writer.writerow(
            [
                row["display_name"] or row["user_id"],
                row["email"] or "",
                ", ".join(row["roles"]),
                row["school_name"],
                row["team_name"],
                row["cohort_completion_percent"],
            ]
        )
    return buffer.getvalue()
