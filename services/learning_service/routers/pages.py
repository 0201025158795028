from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.routers._shared import current_scope
from services.learning_service.schemas.listings import (
    CohortWorkspace,
    DistrictPage,
    MyTeamPage,
    SchoolPage,
    TeamPage,
)
from services.learning_service.schemas.pages import (
    ActivityPage,
    MyProgramsPage,
    MyProgressPage,
    ProgramPage,
)
from services.learning_service.schemas.scope import Scope
from services.learning_service.services import directory, views
from services.learning_service.services.views import parse_id
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["learning-pages"])
logger = get_logger(__name__)


# --- Participant pages ---


@router.get("/my-programs", response_model=MyProgramsPage)
async def my_programs(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await views.build_my_programs(db, current_user)


@router.get("/program", response_model=ProgramPage)
async def program_page(
    id: Optional[str] = Query(None),
    enrollment: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await views.build_program_page(
        db, current_user, pathway_id=parse_id(id), enrollment_id=parse_id(enrollment)
    )


@router.get("/activity", response_model=ActivityPage)
async def activity_page(
    id: Optional[str] = Query(None),
    enrollment: Optional[str] = Query(None),
    instance_id: Optional[str] = Query(None),
    message: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await views.build_activity_page(
        db,
        current_user,
        activity_id=parse_id(id),
        enrollment_id=parse_id(enrollment),
        instance_id=instance_id,
        message=message,
    )


@router.get("/my-progress", response_model=MyProgressPage)
async def my_progress(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await views.build_my_progress(db, current_user)


@router.get("/my-team", response_model=MyTeamPage)
async def my_team(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_my_team(db, current_user)


# --- Detail pages ---


@router.get("/team", response_model=TeamPage)
async def team_page(
    id: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_team_page(db, current_user, scope, parse_id(id))


@router.get("/cohort", response_model=CohortWorkspace)
async def cohort_workspace(
    id: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_cohort_workspace(db, current_user, scope, parse_id(id))


@router.get("/district", response_model=DistrictPage)
async def district_page(
    id: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_district_page(db, current_user, scope, parse_id(id))


@router.get("/school", response_model=SchoolPage)
async def school_page(
    id: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_school_page(db, current_user, scope, parse_id(id))


@router.get("/me/scope", response_model=Scope)
async def my_scope(scope: Scope = Depends(current_scope)):
    """What the caller can see; handy when debugging role setups."""
    return scope
