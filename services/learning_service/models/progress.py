import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import CompletionStatus, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

# ============================================================================
# ACTIVITY STATE & ROLLUPS
# ============================================================================


class ActivityState(Base):
    __tablename__ = "hl_activity_state"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "activity_id", name="uq_activity_state"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=False, index=True
    )
    completion_percent: Mapped[float] = mapped_column(Float, default=0.0)
    completion_status: Mapped[CompletionStatus] = mapped_column(
        SAEnum(
            CompletionStatus,
            name="completion_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=CompletionStatus.NOT_STARTED,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    @property
    def is_complete(self) -> bool:
        return self.completion_status == CompletionStatus.COMPLETE


class CompletionRollup(Base):
    """Cached weighted completion for one enrollment."""

    __tablename__ = "hl_completion_rollup"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, unique=True
    )
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    pathway_completion_percent: Mapped[float] = mapped_column(Float, default=0.0)
    cohort_completion_percent: Mapped[float] = mapped_column(Float, default=0.0)
    last_computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
