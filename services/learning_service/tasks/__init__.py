"""Public exports for learning background tasks."""

from services.learning_service.tasks.maintenance import (
    recompute_all_rollups,
    transition_cohort_statuses,
)

__all__ = [
    "recompute_all_rollups",
    "transition_cohort_statuses",
]
