"""Cohort lifecycle: creation, manual status changes and date-driven transitions."""

import uuid
from datetime import date
from typing import Optional

from fastapi import HTTPException
from libs.common.logging import get_logger
from services.learning_service.models import Cohort, CohortStatus
from services.learning_service.schemas.org import CohortCreate, CohortUpdate
from services.learning_service.services import audit
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_cohort(db: AsyncSession, cohort_id: uuid.UUID) -> Cohort:
    cohort = await db.get(Cohort, cohort_id)
    if cohort is None:
        raise HTTPException(status_code=404, detail="Cohort not found")
    return cohort


async def create_cohort(
    db: AsyncSession, *, cohort_in: CohortCreate, actor_user_id: Optional[str] = None
) -> Cohort:
    if cohort_in.code:
        existing = await db.execute(select(Cohort.id).where(Cohort.code == cohort_in.code))
        if existing.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Cohort code already in use")

    cohort = Cohort(**cohort_in.model_dump())
    db.add(cohort)
    await db.flush()
    audit.log(
        db,
        "cohort.created",
        actor_user_id=actor_user_id,
        cohort_id=cohort.id,
        entity_type="cohort",
        entity_id=cohort.id,
        after_data={"name": cohort.name, "status": cohort.status.value},
    )
    await db.commit()
    await db.refresh(cohort)
    logger.info("Created cohort %s (%s)", cohort.id, cohort.name)
    return cohort


async def update_cohort(
    db: AsyncSession,
    cohort_id: uuid.UUID,
    *,
    cohort_in: CohortUpdate,
    actor_user_id: Optional[str] = None,
) -> Cohort:
    """Edit cohort details. Status moves through ``change_status`` instead."""
    cohort = await get_cohort(db, cohort_id)
    update_data = cohort_in.model_dump(exclude_unset=True)
    for field in ("name", "start_date"):
        if update_data.get(field) is None:
            update_data.pop(field, None)

    if update_data.get("code") and update_data["code"] != cohort.code:
        existing = await db.execute(select(Cohort.id).where(Cohort.code == update_data["code"]))
        if existing.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Cohort code already in use")

    start = update_data.get("start_date", cohort.start_date)
    end = update_data.get("end_date", cohort.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end_date is before start_date")

    before, after = audit.apply_changes(cohort, update_data)
    if after:
        audit.log(
            db,
            "cohort.updated",
            actor_user_id=actor_user_id,
            cohort_id=cohort.id,
            entity_type="cohort",
            entity_id=cohort.id,
            before_data=before,
            after_data=after,
        )
    await db.commit()
    await db.refresh(cohort)
    return cohort


async def change_status(
    db: AsyncSession,
    cohort_id: uuid.UUID,
    new_status: CohortStatus,
    *,
    actor_user_id: Optional[str] = None,
    reason: Optional[str] = None,
    commit: bool = True,
) -> Cohort:
    cohort = await get_cohort(db, cohort_id)
    old_status = cohort.status
    if old_status == new_status:
        raise HTTPException(status_code=400, detail=f"Cohort is already {new_status.value}")

    cohort.status = new_status
    audit.log(
        db,
        "cohort.status_changed",
        actor_user_id=actor_user_id,
        cohort_id=cohort.id,
        entity_type="cohort",
        entity_id=cohort.id,
        before_data={"status": old_status.value},
        after_data={"status": new_status.value},
        reason=reason,
    )
    if commit:
        await db.commit()
        await db.refresh(cohort)
    logger.info(
        "Cohort %s transitioned from %s to %s", cohort.id, old_status.value, new_status.value
    )
    return cohort


async def apply_date_transitions(db: AsyncSession, today: date) -> dict:
    """Start future cohorts whose start date has come and archive ended ones."""
    started = (
        await db.execute(
            select(Cohort).where(
                Cohort.status == CohortStatus.FUTURE,
                Cohort.start_date.is_not(None),
                Cohort.start_date <= today,
            )
        )
    ).scalars().all()
    ended = (
        await db.execute(
            select(Cohort).where(
                Cohort.status == CohortStatus.ACTIVE,
                Cohort.end_date.is_not(None),
                Cohort.end_date < today,
            )
        )
    ).scalars().all()

    for cohort in started:
        await change_status(
            db, cohort.id, CohortStatus.ACTIVE, reason="start date reached", commit=False
        )
    for cohort in ended:
        await change_status(
            db, cohort.id, CohortStatus.ARCHIVED, reason="end date passed", commit=False
        )
    await db.commit()
    return {"activated": len(started), "archived": len(ended)}


async def active_cohort_ids(db: AsyncSession) -> list[uuid.UUID]:
    result = await db.execute(select(Cohort.id).where(Cohort.status == CohortStatus.ACTIVE))
    return list(result.scalars().all())
