import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.models import (
    Activity,
    ActivityPrereqGroup,
    ActivityStatus,
    Enrollment,
    Pathway,
)
from services.learning_service.schemas.availability import (
    AvailabilityResult,
    CycleCheck,
    PrereqGroupResponse,
    PrerequisitesUpdate,
)
from services.learning_service.schemas.pathway import (
    ActivityCreate,
    ActivityProgressUpdate,
    ActivityResponse,
    ActivityStateResponse,
    ActivityUpdate,
    DripRuleCreate,
    DripRuleResponse,
    OverrideCreate,
    OverrideResponse,
    PathwayCreate,
    PathwayResponse,
    PathwayUpdate,
)
from services.learning_service.services import (
    audit,
    pathways,
    progress,
    reporting,
    rules_engine,
)
from services.learning_service.services.cohorts import get_cohort
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin", tags=["learning-admin"])
logger = get_logger(__name__)


def _group_response(group: ActivityPrereqGroup) -> PrereqGroupResponse:
    return PrereqGroupResponse(
        id=group.id,
        prereq_type=group.prereq_type,
        n_required=group.n_required,
        activity_ids=[item.prerequisite_activity_id for item in group.items],
    )


async def _get_activity(db: AsyncSession, activity_id: uuid.UUID) -> Activity:
    activity = await db.get(Activity, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity


# --- Pathways ---


@router.get("/pathways", response_model=List[PathwayResponse])
async def list_pathways(
    cohort_id: Optional[uuid.UUID] = Query(None),
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Pathway)
    if cohort_id:
        query = query.where(Pathway.cohort_id == cohort_id)
    result = await db.execute(query.order_by(Pathway.name))
    return result.scalars().all()


@router.post("/pathways", response_model=PathwayResponse, status_code=status.HTTP_201_CREATED)
async def create_pathway(
    pathway_in: PathwayCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await get_cohort(db, pathway_in.cohort_id)
    pathway = Pathway(**pathway_in.model_dump())
    db.add(pathway)
    await db.flush()
    audit.log(
        db,
        "pathway.created",
        actor_user_id=current_user.user_id,
        cohort_id=pathway.cohort_id,
        entity_type="pathway",
        entity_id=pathway.id,
        after_data={"name": pathway.name, "target_roles": pathway.target_roles},
    )
    await db.commit()
    await db.refresh(pathway)
    return pathway


@router.patch("/pathways/{pathway_id}", response_model=PathwayResponse)
async def update_pathway(
    pathway_id: uuid.UUID,
    pathway_in: PathwayUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    pathway = await db.get(Pathway, pathway_id)
    if pathway is None:
        raise HTTPException(status_code=404, detail="Pathway not found")

    update_data = pathway_in.model_dump(exclude_unset=True)
    if update_data.get("name") is None:
        update_data.pop("name", None)
    if update_data.get("active_status") is None:
        update_data.pop("active_status", None)

    before, after = audit.apply_changes(pathway, update_data)
    if after:
        audit.log(
            db,
            "pathway.updated",
            actor_user_id=current_user.user_id,
            cohort_id=pathway.cohort_id,
            entity_type="pathway",
            entity_id=pathway.id,
            before_data=before,
            after_data=after,
        )
    await db.commit()
    await db.refresh(pathway)
    return pathway


# --- Activities ---


@router.get("/pathways/{pathway_id}/activities", response_model=List[ActivityResponse])
async def list_activities(
    pathway_id: uuid.UUID,
    include_removed: bool = False,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Activity).where(Activity.pathway_id == pathway_id)
    if not include_removed:
        query = query.where(Activity.status == ActivityStatus.ACTIVE)
    result = await db.execute(query.order_by(Activity.ordering_hint, Activity.title))
    return result.scalars().all()


@router.post(
    "/pathways/{pathway_id}/activities",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_activity(
    pathway_id: uuid.UUID,
    activity_in: ActivityCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    pathway = await db.get(Pathway, pathway_id)
    if pathway is None:
        raise HTTPException(status_code=404, detail="Pathway not found")

    activity = Activity(
        cohort_id=pathway.cohort_id, pathway_id=pathway.id, **activity_in.model_dump()
    )
    db.add(activity)
    await db.flush()
    audit.log(
        db,
        "activity.created",
        actor_user_id=current_user.user_id,
        cohort_id=pathway.cohort_id,
        entity_type="activity",
        entity_id=activity.id,
        after_data={"title": activity.title, "activity_type": activity.activity_type},
    )
    await db.commit()
    await db.refresh(activity)
    return activity


@router.patch("/activities/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: uuid.UUID,
    activity_in: ActivityUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    activity = await _get_activity(db, activity_id)
    update_data = {
        field: value
        for field, value in activity_in.model_dump(exclude_unset=True).items()
        if value is not None or field in ("description", "external_ref")
    }

    before, after = audit.apply_changes(activity, update_data)
    if after:
        audit.log(
            db,
            "activity.updated",
            actor_user_id=current_user.user_id,
            cohort_id=activity.cohort_id,
            entity_type="activity",
            entity_id=activity.id,
            before_data=before,
            after_data=after,
        )
    await db.commit()
    await db.refresh(activity)

    # Weights feed every completion percent in the cohort.
    if "weight" in after:
        await reporting.recompute_cohort_rollups(db, activity.cohort_id)
        await db.refresh(activity)
    return activity


@router.delete("/activities/{activity_id}", response_model=ActivityResponse)
async def remove_activity(
    activity_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Soft-remove: the activity disappears from pages but its history stays."""
    activity = await _get_activity(db, activity_id)
    activity.status = ActivityStatus.REMOVED
    audit.log(
        db,
        "activity.removed",
        actor_user_id=current_user.user_id,
        cohort_id=activity.cohort_id,
        entity_type="activity",
        entity_id=activity.id,
    )
    await db.commit()
    await db.refresh(activity)
    return activity


# --- Gating ---


@router.get("/activities/{activity_id}/prerequisites", response_model=List[PrereqGroupResponse])
async def get_prerequisites(
    activity_id: uuid.UUID,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await _get_activity(db, activity_id)
    return [_group_response(g) for g in await pathways.get_prerequisite_groups(db, activity_id)]


@router.put("/activities/{activity_id}/prerequisites", response_model=List[PrereqGroupResponse])
async def set_prerequisites(
    activity_id: uuid.UUID,
    update: PrerequisitesUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    groups = await pathways.set_prerequisites(
        db, activity_id=activity_id, groups=update.groups, actor_user_id=current_user.user_id
    )
    return [_group_response(g) for g in groups]


@router.post("/activities/{activity_id}/prerequisites/validate", response_model=CycleCheck)
async def validate_prerequisites(
    activity_id: uuid.UUID,
    update: PrerequisitesUpdate,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Dry-run the cycle check without saving anything."""
    activity = await _get_activity(db, activity_id)
    proposed = [aid for group in update.groups for aid in group.activity_ids]
    return await rules_engine.validate_no_cycles(db, activity.pathway_id, activity.id, proposed)


@router.post(
    "/activities/{activity_id}/drip-rules",
    response_model=DripRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_drip_rule(
    activity_id: uuid.UUID,
    rule_in: DripRuleCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await pathways.add_drip_rule(
        db, activity_id=activity_id, rule_in=rule_in, actor_user_id=current_user.user_id
    )


@router.post("/overrides", response_model=OverrideResponse, status_code=status.HTTP_201_CREATED)
async def add_override(
    override_in: OverrideCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await pathways.add_override(
        db, override_in=override_in, actor_user_id=current_user.user_id
    )


# --- Progress ---


@router.put("/activities/{activity_id}/progress", response_model=ActivityStateResponse)
async def record_progress(
    activity_id: uuid.UUID,
    progress_in: ActivityProgressUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await progress.record_activity_progress(
        db,
        enrollment_id=progress_in.enrollment_id,
        activity_id=activity_id,
        percent=progress_in.completion_percent,
        actor_user_id=current_user.user_id,
    )


@router.get(
    "/enrollments/{enrollment_id}/availability/{activity_id}",
    response_model=AvailabilityResult,
)
async def get_availability(
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    if await db.get(Enrollment, enrollment_id) is None:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    await _get_activity(db, activity_id)
    return await rules_engine.compute_availability(db, enrollment_id, activity_id)
