"""Scoped, paginated directory listings.

``paged`` is accepted as a raw string so a bad value falls back to page 1
instead of failing validation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.common.pagination import Page
from libs.db.session import get_async_db
from services.learning_service.models import CohortStatus, SessionStatus
from services.learning_service.routers._shared import current_scope
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
from services.learning_service.services import listings
from services.learning_service.services.listings import resolve_cohort_filter
from services.learning_service.services.views import parse_id
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["learning-listings"])


@router.get("/cohorts", response_model=Page[CohortRow])
async def list_cohorts(
    paged: Optional[str] = Query(None),
    status: Optional[CohortStatus] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_cohorts(db, scope, paged=paged, status=status)


@router.get("/learners", response_model=Page[LearnerRow])
async def list_learners(
    paged: Optional[str] = Query(None),
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    school_id: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_learners(
        db,
        scope,
        paged=paged,
        cohort_id=resolve_cohort_filter(hl_cohort_id, hl_track_id),
        school_id=parse_id(school_id),
        role=role or None,
    )


@router.get("/districts", response_model=Page[DistrictRow])
async def list_districts(
    paged: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_districts(db, scope, paged=paged)


@router.get("/schools", response_model=Page[SchoolRow])
async def list_schools(
    paged: Optional[str] = Query(None),
    district_id: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_schools(
        db, scope, paged=paged, district_id=parse_id(district_id)
    )


@router.get("/teams", response_model=Page[TeamRow])
async def list_teams(
    paged: Optional[str] = Query(None),
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_teams(
        db, scope, paged=paged, cohort_id=resolve_cohort_filter(hl_cohort_id, hl_track_id)
    )


@router.get("/pathways", response_model=Page[PathwayRow])
async def list_pathways(
    paged: Optional[str] = Query(None),
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_pathways(
        db, scope, paged=paged, cohort_id=resolve_cohort_filter(hl_cohort_id, hl_track_id)
    )


@router.get("/coaching-hub", response_model=Page[SessionRow])
async def list_coaching_sessions(
    paged: Optional[str] = Query(None),
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    status: Optional[SessionStatus] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await listings.list_coaching_sessions(
        db,
        scope,
        paged=paged,
        cohort_id=resolve_cohort_filter(hl_cohort_id, hl_track_id),
        status=status,
    )
