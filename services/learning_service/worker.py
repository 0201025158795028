"""ARQ worker for learning service background tasks.

Schedules periodic tasks via ARQ cron jobs backed by Redis.
Run with: arq services.learning_service.worker.WorkerSettings
"""

from arq import cron
from libs.common.arq_config import get_redis_settings
from libs.common.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_transition_cohort_statuses(ctx: dict):
    """Transition cohort statuses based on dates."""
    from services.learning_service.tasks import transition_cohort_statuses

    logger.info("Running: transition_cohort_statuses")
    await transition_cohort_statuses()


async def task_recompute_all_rollups(ctx: dict):
    """Recompute completion rollups for active cohorts."""
    from services.learning_service.tasks import recompute_all_rollups

    logger.info("Running: recompute_all_rollups")
    await recompute_all_rollups()


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings with cron job schedules."""

    redis_settings = get_redis_settings()

    functions = [
        task_transition_cohort_statuses,
        task_recompute_all_rollups,
    ]

    cron_jobs = [
        # Hourly
        cron(
            task_transition_cohort_statuses,
            minute=30,
            run_at_startup=False,
        ),
        # Nightly (3 AM UTC)
        cron(
            task_recompute_all_rollups,
            hour=3,
            minute=0,
            run_at_startup=False,
        ),
    ]
