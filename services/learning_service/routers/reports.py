from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.routers._shared import current_scope
from services.learning_service.schemas.listings import CohortSummary, ParticipantReport
from services.learning_service.schemas.scope import Scope
from services.learning_service.services import directory, reporting
from services.learning_service.services.listings import resolve_cohort_filter
from services.learning_service.services.views import parse_id
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["learning-reports"])
logger = get_logger(__name__)


@router.get("/reports/participants", response_model=ParticipantReport)
async def participant_report(
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    school_id: Optional[str] = Query(None),
    district_id: Optional[str] = Query(None),
    team_id: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    status: Optional[str] = Query("active"),
    format: Optional[str] = Query(None, description="Pass 'csv' for a download"),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    cohort_id = resolve_cohort_filter(hl_cohort_id, hl_track_id)
    rows = await directory.build_participant_report(
        db,
        scope,
        cohort_id=cohort_id,
        school_id=parse_id(school_id),
        district_id=parse_id(district_id),
        team_id=parse_id(team_id),
        role=role or None,
        status=status,
    )
    if format == "csv":
        return Response(
            content=reporting.participant_report_csv(rows),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="participants-{cohort_id}.csv"'
            },
        )
    return directory.participant_report_model(cohort_id, rows)


@router.get("/reports/cohort-summary", response_model=CohortSummary)
async def cohort_summary(
    hl_cohort_id: Optional[str] = Query(None),
    hl_track_id: Optional[str] = Query(None),
    scope: Scope = Depends(current_scope),
    db: AsyncSession = Depends(get_async_db),
):
    return await directory.build_cohort_summary(
        db, scope, resolve_cohort_filter(hl_cohort_id, hl_track_id)
    )
