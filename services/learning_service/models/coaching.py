import uuid
from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import (
    AttendanceStatus,
    CoachScopeType,
    SessionStatus,
    enum_values,
)
from sqlalchemy import Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# COACH ASSIGNMENTS
# ============================================================================


class CoachAssignment(Base):
    """Puts a coach in charge of a school, a team or a single enrollment for a date window."""

    __tablename__ = "hl_coach_assignment"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    coach_user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    coach_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    coach_email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    scope_type: Mapped[CoachScopeType] = mapped_column(
        SAEnum(
            CoachScopeType,
            name="coach_scope_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    scope_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def is_active_on(self, day: date) -> bool:
        return self.effective_from <= day and (
            self.effective_to is None or self.effective_to >= day
        )


# ============================================================================
# COACHING SESSIONS
# ============================================================================


class CoachingSession(Base):
    __tablename__ = "hl_coaching_session"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    coach_user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    mentor_enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, index=True
    )
    session_title: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    meeting_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    session_datetime: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    session_status: Mapped[SessionStatus] = mapped_column(
        SAEnum(
            SessionStatus,
            name="coaching_session_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=SessionStatus.SCHEDULED,
    )
    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        SAEnum(
            AttendanceStatus,
            name="coaching_attendance_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=AttendanceStatus.UNKNOWN,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rescheduled_from_session_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_coaching_session.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    mentor_enrollment = relationship("Enrollment")

    def __repr__(self):
        return f"<CoachingSession {self.id} {self.session_status}>"
