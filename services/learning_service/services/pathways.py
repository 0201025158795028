"""Pathway assignment and activity authoring."""

import uuid
from typing import Optional

from fastapi import HTTPException
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityDripRule,
    ActivityOverride,
    ActivityPrereqGroup,
    ActivityPrereqItem,
    AssignmentType,
    Enrollment,
    Pathway,
    PathwayAssignment,
)
from services.learning_service.schemas.availability import PrereqGroupIn
from services.learning_service.services import audit, rules_engine
from sqlalchemy import case, delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

ROLE_LABELS = {
    "teacher": "Teacher",
    "mentor": "Mentor",
    "school_leader": "School Leader",
    "district_leader": "District Leader",
}


def role_label(role: str) -> str:
    return ROLE_LABELS.get(role, role.capitalize())


def pathway_targets_roles(pathway: Pathway, roles: list[str]) -> bool:
    targets = pathway.target_roles or []
    if not targets:
        return False
    return any(role_label(role) in targets for role in roles)


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


async def get_pathways_for_enrollment(
    db: AsyncSession, enrollment: Enrollment
) -> list[tuple[Pathway, AssignmentType]]:
    """Pathways an enrollment follows.

    Assignment rows win. Without any, active cohort pathways whose target
    roles match the enrollment's roles apply, and finally the legacy
    ``assigned_pathway_id``.
    """
    result = await db.execute(
        select(Pathway, PathwayAssignment.assignment_type)
        .join(PathwayAssignment, PathwayAssignment.pathway_id == Pathway.id)
        .where(
            PathwayAssignment.enrollment_id == enrollment.id,
            Pathway.active_status.is_(True),
        )
        .order_by(PathwayAssignment.assignment_type, Pathway.name)
    )
    assigned = [(pathway, assignment_type) for pathway, assignment_type in result.all()]
    if assigned:
        return assigned

    if enrollment.roles:
        result = await db.execute(
            select(Pathway)
            .where(Pathway.cohort_id == enrollment.cohort_id, Pathway.active_status.is_(True))
            .order_by(Pathway.name)
        )
        matched = [
            (pathway, AssignmentType.ROLE_DEFAULT)
            for pathway in result.scalars().all()
            if pathway_targets_roles(pathway, enrollment.roles)
        ]
        if matched:
            return matched

    if enrollment.assigned_pathway_id:
        legacy = await db.get(Pathway, enrollment.assigned_pathway_id)
        if legacy is not None:
            return [(legacy, AssignmentType.ROLE_DEFAULT)]
    return []


async def enrollment_has_pathway(
    db: AsyncSession, enrollment: Enrollment, pathway_id: uuid.UUID
) -> bool:
    if enrollment.assigned_pathway_id == pathway_id:
        return True
    pathways = await get_pathways_for_enrollment(db, enrollment)
    return any(pathway.id == pathway_id for pathway, _ in pathways)


async def _sync_assigned_pathway(db: AsyncSession, enrollment: Enrollment) -> None:
    explicit_first = case((PathwayAssignment.assignment_type == AssignmentType.EXPLICIT, 0), else_=1)
    result = await db.execute(
        select(PathwayAssignment.pathway_id)
        .where(PathwayAssignment.enrollment_id == enrollment.id)
        .order_by(explicit_first, PathwayAssignment.created_at)
        .limit(1)
    )
    enrollment.assigned_pathway_id = result.scalar_one_or_none()


async def assign_pathway(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    pathway_id: uuid.UUID,
    assignment_type: AssignmentType = AssignmentType.EXPLICIT,
    actor_user_id: Optional[str] = None,
    commit: bool = True,
) -> PathwayAssignment:
    enrollment = await db.get(Enrollment, enrollment_id)
    pathway = await db.get(Pathway, pathway_id)
    if enrollment is None or pathway is None:
        raise HTTPException(status_code=404, detail="Enrollment or pathway not found")
    if pathway.cohort_id != enrollment.cohort_id:
        raise HTTPException(status_code=400, detail="Pathway belongs to a different cohort")

    result = await db.execute(
        select(PathwayAssignment).where(
            PathwayAssignment.enrollment_id == enrollment_id,
            PathwayAssignment.pathway_id == pathway_id,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        assignment = PathwayAssignment(
            enrollment_id=enrollment_id,
            pathway_id=pathway_id,
            assignment_type=assignment_type,
            assigned_by=actor_user_id,
        )
        db.add(assignment)
    elif assignment_type == AssignmentType.EXPLICIT:
        assignment.assignment_type = AssignmentType.EXPLICIT

    await db.flush()
    await _sync_assigned_pathway(db, enrollment)
    audit.log(
        db,
        "pathway.assigned",
        actor_user_id=actor_user_id,
        cohort_id=enrollment.cohort_id,
        entity_type="enrollment",
        entity_id=enrollment_id,
        after_data={"pathway_id": pathway_id, "assignment_type": assignment.assignment_type},
    )
    if commit:
        await db.commit()
    return assignment


async def unassign_pathway(
    db: AsyncSession,
    *,
    enrollment_id: uuid.UUID,
    pathway_id: uuid.UUID,
    actor_user_id: Optional[str] = None,
) -> bool:
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    result = await db.execute(
        delete(PathwayAssignment).where(
            PathwayAssignment.enrollment_id == enrollment_id,
            PathwayAssignment.pathway_id == pathway_id,
        )
    )
    removed = result.rowcount > 0
    await _sync_assigned_pathway(db, enrollment)
    if removed:
        audit.log(
            db,
            "pathway.unassigned",
            actor_user_id=actor_user_id,
            cohort_id=enrollment.cohort_id,
            entity_type="enrollment",
            entity_id=enrollment_id,
            before_data={"pathway_id": pathway_id},
        )
    await db.commit()
    return removed


async def sync_role_defaults(
    db: AsyncSession, cohort_id: uuid.UUID, actor_user_id: Optional[str] = None
) -> int:
    """Create role-default assignments for enrollments without explicit ones."""
    pathways = (
        await db.execute(
            select(Pathway).where(Pathway.cohort_id == cohort_id, Pathway.active_status.is_(True))
        )
    ).scalars().all()
    explicit = select(PathwayAssignment.enrollment_id).where(
        PathwayAssignment.assignment_type == AssignmentType.EXPLICIT
    )
    enrollments = (
        await db.execute(
            select(Enrollment).where(
                Enrollment.cohort_id == cohort_id, Enrollment.id.not_in(explicit)
            )
        )
    ).scalars().all()

    created = 0
    for enrollment in enrollments:
        for pathway in pathways:
            if not pathway_targets_roles(pathway, enrollment.roles or []):
                continue
            existing = await db.execute(
                select(PathwayAssignment.id).where(
                    PathwayAssignment.enrollment_id == enrollment.id,
                    PathwayAssignment.pathway_id == pathway.id,
                )
            )
            if existing.scalar_one_or_none():
                continue
            await assign_pathway(
                db,
                enrollment_id=enrollment.id,
                pathway_id=pathway.id,
                assignment_type=AssignmentType.ROLE_DEFAULT,
                actor_user_id=actor_user_id,
                commit=False,
            )
            created += 1

    await db.commit()
    logger.info("Synced %s role-default pathway assignments in cohort %s", created, cohort_id)
    return created


# ---------------------------------------------------------------------------
# Gating rules
# ---------------------------------------------------------------------------


async def get_prerequisite_groups(
    db: AsyncSession, activity_id: uuid.UUID
) -> list[ActivityPrereqGroup]:
    result = await db.execute(
        select(ActivityPrereqGroup)
        .options(selectinload(ActivityPrereqGroup.items))
        .where(ActivityPrereqGroup.activity_id == activity_id)
        .order_by(ActivityPrereqGroup.created_at, ActivityPrereqGroup.id)
    )
    return list(result.scalars().all())


async def set_prerequisites(
    db: AsyncSession,
    *,
    activity_id: uuid.UUID,
    groups: list[PrereqGroupIn],
    actor_user_id: Optional[str] = None,
) -> list[ActivityPrereqGroup]:
    """Replace an activity's prerequisite groups. 409 if the result would be cyclic."""
    activity = await db.get(Activity, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")

    proposed = []
    for group in groups:
        if activity_id in group.activity_ids:
            raise HTTPException(status_code=400, detail="An activity cannot be its own prerequisite")
        if group.n_required is not None and group.n_required > len(group.activity_ids):
            raise HTTPException(
                status_code=400, detail="n_required exceeds the number of prerequisites"
            )
        proposed.extend(aid for aid in group.activity_ids if aid not in proposed)

    check = await rules_engine.validate_no_cycles(db, activity.pathway_id, activity_id, proposed)
    if not check.valid:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Prerequisites would create a cycle",
                "cycle": [str(aid) for aid in check.cycle or []],
            },
        )

    before = await get_prerequisite_groups(db, activity_id)
    before_data = {
        "groups": [
            {
                "prereq_type": g.prereq_type,
                "n_required": g.n_required,
                "activity_ids": [str(i.prerequisite_activity_id) for i in g.items],
            }
            for g in before
        ]
    }
    for group in before:
        await db.delete(group)
    await db.flush()

    for group in groups:
        if not group.activity_ids:
            continue
        db.add(
            ActivityPrereqGroup(
                activity_id=activity_id,
                prereq_type=group.prereq_type,
                n_required=group.n_required,
                items=[ActivityPrereqItem(prerequisite_activity_id=aid) for aid in group.activity_ids],
            )
        )

    audit.log(
        db,
        "activity.prerequisites_updated",
        actor_user_id=actor_user_id,
        cohort_id=activity.cohort_id,
        entity_type="activity",
        entity_id=activity_id,
        before_data=before_data,
        after_data={"groups": [g.model_dump(mode="json") for g in groups]},
    )
    await db.commit()
    return await get_prerequisite_groups(db, activity_id)


async def add_drip_rule(
    db: AsyncSession, *, activity_id: uuid.UUID, rule_in, actor_user_id: Optional[str] = None
) -> ActivityDripRule:
    activity = await db.get(Activity, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    if rule_in.base_activity_id == activity_id:
        raise HTTPException(status_code=400, detail="A drip rule cannot depend on its own activity")

    rule = ActivityDripRule(activity_id=activity_id, **rule_in.model_dump())
    db.add(rule)
    audit.log(
        db,
        "activity.drip_rule_added",
        actor_user_id=actor_user_id,
        cohort_id=activity.cohort_id,
        entity_type="activity",
        entity_id=activity_id,
        after_data=rule_in.model_dump(mode="json"),
    )
    await db.commit()
    await db.refresh(rule)
    return rule


async def add_override(
    db: AsyncSession, *, override_in, actor_user_id: Optional[str] = None
) -> ActivityOverride:
    enrollment = await db.get(Enrollment, override_in.enrollment_id)
    activity = await db.get(Activity, override_in.activity_id)
    if enrollment is None or activity is None:
        raise HTTPException(status_code=404, detail="Enrollment or activity not found")

    override = ActivityOverride(
        enrollment_id=override_in.enrollment_id,
        activity_id=override_in.activity_id,
        override_type=override_in.override_type,
        reason=override_in.reason,
        applied_by=actor_user_id,
    )
    db.add(override)
    audit.log(
        db,
        "activity.override_applied",
        actor_user_id=actor_user_id,
        cohort_id=enrollment.cohort_id,
        entity_type="activity",
        entity_id=override_in.activity_id,
        after_data={
            "enrollment_id": override_in.enrollment_id,
            "override_type": override_in.override_type,
        },
        reason=override_in.reason,
    )
    await db.commit()
    await db.refresh(override)
    return override
