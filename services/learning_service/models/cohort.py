import uuid
from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import CohortStatus, enum_values
from sqlalchemy import JSON, Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# COHORT
# ============================================================================


class Cohort(Base):
    __tablename__ = "hl_cohort"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String, nullable=True, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[CohortStatus] = mapped_column(
        SAEnum(
            CohortStatus,
            name="cohort_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=CohortStatus.FUTURE,
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    timezone: Mapped[str] = mapped_column(String, default="America/New_York")

    district_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_orgunit.id"), nullable=True
    )

    # Free-form per-cohort switches, e.g. {"coaching_allow_cancellation": false}
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    enrollments = relationship("Enrollment", back_populates="cohort")
    pathways = relationship("Pathway", back_populates="cohort")
    teams = relationship("Team", back_populates="cohort")

    def get_setting(self, key: str, default=None):
        return (self.settings or {}).get(key, default)

    def __repr__(self):
        return f"<Cohort {self.name} ({self.status})>"
