"""Unit tests for cohort lifecycle and form nonces."""

from datetime import date, timedelta

import pytest
from fastapi import HTTPException
from libs.auth.nonce import create_nonce, verify_nonce
from services.learning_service.models import AuditLog, CohortStatus
from services.learning_service.schemas.org import CohortCreate
from services.learning_service.services import cohorts
from sqlalchemy import select
from tests.factories import CohortFactory, persist

TODAY = date(2025, 3, 10)


# ---------------------------------------------------------------------------
# Cohorts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_cohort_rejects_duplicate_code(db_session):
    await cohorts.create_cohort(
        db_session, cohort_in=CohortCreate(name="Spring", code="SPR"), actor_user_id="admin"
    )

    with pytest.raises(HTTPException) as exc_info:
        await cohorts.create_cohort(
            db_session, cohort_in=CohortCreate(name="Again", code="SPR"), actor_user_id="admin"
        )
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
@pytest.mark.unit
async def test_change_status_is_audited(db_session):
    cohort = CohortFactory.create(status=CohortStatus.ACTIVE)
    await persist(db_session, cohort)

    updated = await cohorts.change_status(
        db_session, cohort.id, CohortStatus.PAUSED, actor_user_id="admin", reason="break"
    )

    assert updated.status == CohortStatus.PAUSED
    logs = (
        await db_session.execute(
            select(AuditLog).where(AuditLog.action_type == "cohort.status_changed")
        )
    ).scalars().all()
    assert len(logs) == 1
    assert logs[0].cohort_id == cohort.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_change_status_to_same_status_is_rejected(db_session):
    cohort = CohortFactory.create(status=CohortStatus.ACTIVE)
    await persist(db_session, cohort)

    with pytest.raises(HTTPException) as exc_info:
        await cohorts.change_status(db_session, cohort.id, CohortStatus.ACTIVE)
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_apply_date_transitions(db_session):
    starting = CohortFactory.create(
        name="Starting", status=CohortStatus.FUTURE, start_date=TODAY, end_date=None
    )
    not_yet = CohortFactory.create(
        name="Later", status=CohortStatus.FUTURE, start_date=TODAY + timedelta(days=1)
    )
    ending = CohortFactory.create(
        name="Ended",
        status=CohortStatus.ACTIVE,
        start_date=TODAY - timedelta(days=100),
        end_date=TODAY - timedelta(days=1),
    )
    last_day = CohortFactory.create(
        name="Last Day", status=CohortStatus.ACTIVE, start_date=None, end_date=TODAY
    )
    paused = CohortFactory.create(
        name="Paused", status=CohortStatus.PAUSED, end_date=TODAY - timedelta(days=5)
    )
    await persist(db_session, starting, not_yet, ending, last_day, paused)

    counts = await cohorts.apply_date_transitions(db_session, TODAY)

    assert counts == {"activated": 1, "archived": 1}
    assert (await cohorts.get_cohort(db_session, starting.id)).status == CohortStatus.ACTIVE
    assert (await cohorts.get_cohort(db_session, not_yet.id)).status == CohortStatus.FUTURE
    assert (await cohorts.get_cohort(db_session, ending.id)).status == CohortStatus.ARCHIVED
    assert (await cohorts.get_cohort(db_session, last_day.id)).status == CohortStatus.ACTIVE
    assert (await cohorts.get_cohort(db_session, paused.id)).status == CohortStatus.PAUSED


# ---------------------------------------------------------------------------
# Nonces
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_nonce_round_trip():
    token = create_nonce("hl_schedule_session", "user-1")
    assert verify_nonce(token, "hl_schedule_session", "user-1")


@pytest.mark.unit
def test_nonce_is_bound_to_action_and_user():
    token = create_nonce("hl_schedule_session", "user-1")

    assert not verify_nonce(token, "hl_cancel_session", "user-1")
    assert not verify_nonce(token, "hl_schedule_session", "user-2")


@pytest.mark.unit
@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_nonce_is_rejected(token):
    assert not verify_nonce(token, "hl_schedule_session", "user-1")
