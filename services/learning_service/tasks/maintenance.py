"""Periodic maintenance: cohort status transitions and rollup recomputes."""

from libs.common.datetime_utils import utc_today
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.learning_service.services import cohorts, reporting

logger = get_logger(__name__)


async def transition_cohort_statuses() -> dict:
    """
    Move cohorts along by date:
    - FUTURE -> ACTIVE once start_date is reached
    - ACTIVE -> ARCHIVED once end_date has passed

    Runs hourly from the worker.
    """
    result = {"activated": 0, "archived": 0}
    async for db in get_async_db():
        try:
            result = await cohorts.apply_date_transitions(db, utc_today())
            if result["activated"] or result["archived"]:
                logger.info(
                    "Cohort status transitions completed: %s FUTURE->ACTIVE, %s ACTIVE->ARCHIVED",
                    result["activated"],
                    result["archived"],
                )
        except Exception:
            logger.exception("Error transitioning cohort statuses")
            await db.rollback()
        finally:
            await db.close()
            break
    return result


async def recompute_all_rollups() -> dict:
    """Recompute completion rollups for every enrollment of every active cohort."""
    totals = {"cohorts": 0, "updated": 0, "errors": 0}
    async for db in get_async_db():
        try:
            for cohort_id in await cohorts.active_cohort_ids(db):
                outcome = await reporting.recompute_cohort_rollups(db, cohort_id)
                totals["cohorts"] += 1
                totals["updated"] += outcome["updated"]
                totals["errors"] += outcome["errors"]
            logger.info(
                "Rollups recomputed for %s cohorts: %s updated, %s errors",
                totals["cohorts"],
                totals["updated"],
                totals["errors"],
            )
        except Exception:
            logger.exception("Error recomputing rollups")
            await db.rollback()
        finally:
            await db.close()
            break
    return totals
