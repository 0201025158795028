import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.models import (
    Cohort,
    Enrollment,
    OrgUnit,
    OrgUnitType,
    Pathway,
    Team,
)
from services.learning_service.schemas.audit import AuditLogResponse
from services.learning_service.schemas.enrollment import (
    EnrollmentCreate,
    EnrollmentResponse,
    EnrollmentUpdate,
    PathwayAssignmentCreate,
    PathwayAssignmentResponse,
    TeamCreate,
    TeamMemberCreate,
    TeamMembershipResponse,
    TeamResponse,
)
from services.learning_service.schemas.org import (
    CohortCreate,
    CohortDetailResponse,
    CohortResponse,
    CohortStatusUpdate,
    CohortUpdate,
    OrgUnitCreate,
    OrgUnitResponse,
)
from services.learning_service.services import (
    audit,
    cohorts,
    pathways,
    reporting,
    teams,
)
from services.learning_service.tasks import (
    recompute_all_rollups,
    transition_cohort_statuses,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin", tags=["learning-admin"])
logger = get_logger(__name__)


# --- Org units ---


@router.get("/orgunits", response_model=List[OrgUnitResponse])
async def list_orgunits(
    type: Optional[OrgUnitType] = Query(None),
    parent_id: Optional[uuid.UUID] = Query(None),
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(OrgUnit)
    if type:
        query = query.where(OrgUnit.orgunit_type == type)
    if parent_id:
        query = query.where(OrgUnit.parent_orgunit_id == parent_id)
    result = await db.execute(query.order_by(OrgUnit.name))
    return result.scalars().all()


@router.post("/orgunits", response_model=OrgUnitResponse, status_code=status.HTTP_201_CREATED)
async def create_orgunit(
    orgunit_in: OrgUnitCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    if orgunit_in.parent_orgunit_id:
        parent = await db.get(OrgUnit, orgunit_in.parent_orgunit_id)
        if parent is None or parent.orgunit_type != OrgUnitType.DISTRICT:
            raise HTTPException(status_code=400, detail="Parent must be an existing district")

    orgunit = OrgUnit(**orgunit_in.model_dump())
    db.add(orgunit)
    await db.flush()
    audit.log(
        db,
        "orgunit.created",
        actor_user_id=current_user.user_id,
        entity_type="orgunit",
        entity_id=orgunit.id,
        after_data=orgunit_in.model_dump(mode="json"),
    )
    await db.commit()
    await db.refresh(orgunit)
    return orgunit


# --- Cohorts ---


@router.get("/cohorts", response_model=List[CohortResponse])
async def list_cohorts(
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(select(Cohort).order_by(Cohort.start_date.desc(), Cohort.name))
    return result.scalars().all()


@router.post("/cohorts", response_model=CohortResponse, status_code=status.HTTP_201_CREATED)
async def create_cohort(
    cohort_in: CohortCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await cohorts.create_cohort(db, cohort_in=cohort_in, actor_user_id=current_user.user_id)


@router.get("/cohorts/{cohort_id}", response_model=CohortDetailResponse)
async def get_cohort(
    cohort_id: uuid.UUID,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    cohort = await cohorts.get_cohort(db, cohort_id)
    summary = await reporting.get_cohort_summary(db, cohort_id)
    pathway_count = (
        await db.execute(select(func.count(Pathway.id)).where(Pathway.cohort_id == cohort_id))
    ).scalar_one()
    team_count = (
        await db.execute(select(func.count(Team.id)).where(Team.cohort_id == cohort_id))
    ).scalar_one()

    detail = CohortDetailResponse.model_validate(cohort)
    detail.enrollment_count = summary["total_enrollments"]
    detail.avg_completion_percent = summary["avg_completion_percent"]
    detail.pathway_count = pathway_count
    detail.team_count = team_count
    return detail


@router.patch("/cohorts/{cohort_id}", response_model=CohortResponse)
async def update_cohort(
    cohort_id: uuid.UUID,
    cohort_in: CohortUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await cohorts.update_cohort(
        db, cohort_id, cohort_in=cohort_in, actor_user_id=current_user.user_id
    )


@router.post("/cohorts/{cohort_id}/status", response_model=CohortResponse)
async def change_cohort_status(
    cohort_id: uuid.UUID,
    status_in: CohortStatusUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await cohorts.change_status(
        db,
        cohort_id,
        status_in.status,
        actor_user_id=current_user.user_id,
        reason=status_in.reason,
    )


@router.post("/cohorts/{cohort_id}/recompute-rollups")
async def recompute_cohort_rollups(
    cohort_id: uuid.UUID,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await cohorts.get_cohort(db, cohort_id)
    return await reporting.recompute_cohort_rollups(db, cohort_id)


@router.post("/cohorts/{cohort_id}/sync-role-defaults")
async def sync_role_defaults(
    cohort_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await cohorts.get_cohort(db, cohort_id)
    created = await pathways.sync_role_defaults(db, cohort_id, current_user.user_id)
    return {"created": created}


# --- Enrollments ---


@router.get("/enrollments", response_model=List[EnrollmentResponse])
async def list_enrollments(
    cohort_id: Optional[uuid.UUID] = Query(None),
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Enrollment)
    if cohort_id:
        query = query.where(Enrollment.cohort_id == cohort_id)
    result = await db.execute(query.order_by(Enrollment.display_name, Enrollment.user_id))
    return result.scalars().all()


@router.post(
    "/enrollments", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED
)
async def create_enrollment(
    enrollment_in: EnrollmentCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await cohorts.get_cohort(db, enrollment_in.cohort_id)
    existing = await db.execute(
        select(Enrollment.id).where(
            Enrollment.cohort_id == enrollment_in.cohort_id,
            Enrollment.user_id == enrollment_in.user_id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="User is already enrolled in this cohort")

    district_id = enrollment_in.district_id
    if district_id is None and enrollment_in.school_id:
        school = await db.get(OrgUnit, enrollment_in.school_id)
        if school is None:
            raise HTTPException(status_code=404, detail="School not found")
        district_id = school.parent_orgunit_id

    data = enrollment_in.model_dump(mode="json", exclude={"cohort_id", "school_id", "district_id"})
    enrollment = Enrollment(
        **data,
        cohort_id=enrollment_in.cohort_id,
        school_id=enrollment_in.school_id,
        district_id=district_id,
    )
    db.add(enrollment)
    await db.flush()
    audit.log(
        db,
        "enrollment.created",
        actor_user_id=current_user.user_id,
        cohort_id=enrollment.cohort_id,
        entity_type="enrollment",
        entity_id=enrollment.id,
        after_data={"user_id": enrollment.user_id, "roles": enrollment.roles},
    )
    await db.commit()
    await db.refresh(enrollment)
    logger.info("Enrolled %s in cohort %s", enrollment.user_id, enrollment.cohort_id)
    return enrollment


@router.patch("/enrollments/{enrollment_id}", response_model=EnrollmentResponse)
async def update_enrollment(
    enrollment_id: uuid.UUID,
    enrollment_in: EnrollmentUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    update_data = enrollment_in.model_dump(exclude_unset=True)
    if "roles" in update_data:
        update_data["roles"] = [role.value for role in update_data["roles"] or []]
    if update_data.get("status") is None:
        update_data.pop("status", None)
    if update_data.get("school_id") and "district_id" not in update_data:
        school = await db.get(OrgUnit, update_data["school_id"])
        if school is None:
            raise HTTPException(status_code=404, detail="School not found")
        update_data["district_id"] = school.parent_orgunit_id

    before, after = audit.apply_changes(enrollment, update_data)
    if after:
        audit.log(
            db,
            "enrollment.updated",
            actor_user_id=current_user.user_id,
            cohort_id=enrollment.cohort_id,
            entity_type="enrollment",
            entity_id=enrollment.id,
            before_data=before,
            after_data=after,
        )
    await db.commit()
    await db.refresh(enrollment)
    return enrollment


@router.post(
    "/enrollments/{enrollment_id}/pathways",
    response_model=PathwayAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_pathway(
    enrollment_id: uuid.UUID,
    assignment_in: PathwayAssignmentCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await pathways.assign_pathway(
        db,
        enrollment_id=enrollment_id,
        pathway_id=assignment_in.pathway_id,
        actor_user_id=current_user.user_id,
    )


@router.delete(
    "/enrollments/{enrollment_id}/pathways/{pathway_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unassign_pathway(
    enrollment_id: uuid.UUID,
    pathway_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    removed = await pathways.unassign_pathway(
        db,
        enrollment_id=enrollment_id,
        pathway_id=pathway_id,
        actor_user_id=current_user.user_id,
    )
    if not removed:
        raise HTTPException(status_code=404, detail="Pathway assignment not found")


# --- Teams ---


@router.get("/teams", response_model=List[TeamResponse])
async def list_teams(
    cohort_id: Optional[uuid.UUID] = Query(None),
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    query = select(Team)
    if cohort_id:
        query = query.where(Team.cohort_id == cohort_id)
    result = await db.execute(query.order_by(Team.name))
    return result.scalars().all()


@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_in: TeamCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await teams.create_team(
        db,
        cohort_id=team_in.cohort_id,
        name=team_in.name,
        school_id=team_in.school_id,
        actor_user_id=current_user.user_id,
    )


@router.get("/teams/{team_id}/members", response_model=List[TeamMembershipResponse])
async def list_team_members(
    team_id: uuid.UUID,
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await teams.get_team(db, team_id)
    return await teams.list_members(db, team_id)


@router.post(
    "/teams/{team_id}/members",
    response_model=TeamMembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_team_member(
    team_id: uuid.UUID,
    member_in: TeamMemberCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await teams.add_member(
        db,
        team_id=team_id,
        enrollment_id=member_in.enrollment_id,
        membership_type=member_in.membership_type,
        force_override=member_in.force_override,
        actor_user_id=current_user.user_id,
    )


@router.delete(
    "/teams/{team_id}/members/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_team_member(
    team_id: uuid.UUID,
    enrollment_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await teams.remove_member(
        db, team_id=team_id, enrollment_id=enrollment_id, actor_user_id=current_user.user_id
    )


# --- Audit ---


@router.get("/audit", response_model=List[AuditLogResponse])
async def list_audit_logs(
    cohort_id: Optional[uuid.UUID] = Query(None),
    action_type: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    actor_user_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await audit.get_logs(
        db,
        cohort_id=cohort_id,
        action_type=action_type,
        entity_type=entity_type,
        actor_user_id=actor_user_id,
        limit=limit,
        offset=offset,
    )


# --- Admin Tasks ---


@router.post("/tasks/transition-cohort-statuses")
async def trigger_cohort_status_transitions(_: AuthUser = Depends(require_admin)):
    """Run the date-driven cohort transitions now instead of waiting for the cron."""
    result = await transition_cohort_statuses()
    return {"message": "Cohort status transitions triggered successfully", **result}


@router.post("/tasks/recompute-rollups")
async def trigger_rollup_recompute(_: AuthUser = Depends(require_admin)):
    result = await recompute_all_rollups()
    return {"message": "Rollup recompute triggered successfully", **result}
