"""Unit tests for the worker's periodic tasks."""

from datetime import timedelta

import pytest
from libs.common.datetime_utils import utc_today
from services.learning_service.models import CohortStatus, CompletionRollup
from services.learning_service.tasks import maintenance
from sqlalchemy import select
from tests.factories import (
    ActivityFactory,
    ActivityStateFactory,
    CohortFactory,
    EnrollmentFactory,
    PathwayAssignmentFactory,
    PathwayFactory,
    persist,
)


@pytest.fixture
def task_db(db_session, monkeypatch):
    """Point the tasks' session source at the test session."""

    async def _get_db():
        yield db_session

    monkeypatch.setattr(maintenance, "get_async_db", _get_db)
    return db_session


@pytest.mark.asyncio
@pytest.mark.unit
async def test_transition_cohort_statuses(task_db):
    today = utc_today()
    starting = CohortFactory.create(status=CohortStatus.FUTURE, start_date=today)
    ended = CohortFactory.create(
        status=CohortStatus.ACTIVE,
        start_date=today - timedelta(days=90),
        end_date=today - timedelta(days=1),
    )
    await persist(task_db, starting, ended)

    result = await maintenance.transition_cohort_statuses()

    assert result == {"activated": 1, "archived": 1}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recompute_all_rollups(task_db):
    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id, assigned_pathway_id=pathway.id)
    done = ActivityFactory.create(pathway, title="Done")
    todo = ActivityFactory.create(pathway, title="Todo", ordering_hint=1)
    await persist(task_db, cohort, pathway, enrollment, done, todo)
    await persist(
        task_db,
        PathwayAssignmentFactory.create(enrollment.id, pathway.id),
        ActivityStateFactory.create(enrollment.id, done.id),
    )

    totals = await maintenance.recompute_all_rollups()

    assert totals == {"cohorts": 1, "updated": 1, "errors": 0}
    rollup = (
        await task_db.execute(
            select(CompletionRollup).where(CompletionRollup.enrollment_id == enrollment.id)
        )
    ).scalar_one()
    assert float(rollup.cohort_completion_percent) == 50.0
