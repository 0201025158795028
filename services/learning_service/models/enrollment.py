import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import (
    EnrollmentStatus,
    MembershipType,
    RecordStatus,
    enum_values,
)
from sqlalchemy import JSON, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# ENROLLMENT
# ============================================================================


class Enrollment(Base):
    """A user's membership in a cohort. ``user_id`` is the auth subject."""

    __tablename__ = "hl_enrollment"
    __table_args__ = (
        UniqueConstraint("cohort_id", "user_id", name="uq_enrollment_cohort_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # JSON list of enrollment roles: teacher, mentor, school_leader, district_leader
    roles: Mapped[list] = mapped_column(JSON, default=list)

    assigned_pathway_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_pathway.id"), nullable=True
    )
    school_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_orgunit.id"), nullable=True, index=True
    )
    district_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_orgunit.id"), nullable=True
    )

    status: Mapped[EnrollmentStatus] = mapped_column(
        SAEnum(
            EnrollmentStatus,
            name="enrollment_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=EnrollmentStatus.ACTIVE,
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    cohort = relationship("Cohort", back_populates="enrollments")
    assigned_pathway = relationship("Pathway", foreign_keys=[assigned_pathway_id])
    school = relationship("OrgUnit", foreign_keys=[school_id])

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    def __repr__(self):
        return f"<Enrollment {self.user_id} in {self.cohort_id}>"


# ============================================================================
# TEAMS
# ============================================================================


class Team(Base):
    __tablename__ = "hl_team"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    school_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_orgunit.id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[RecordStatus] = mapped_column(
        SAEnum(
            RecordStatus,
            name="team_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RecordStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    cohort = relationship("Cohort", back_populates="teams")
    memberships = relationship(
        "TeamMembership", back_populates="team", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Team {self.name}>"


class TeamMembership(Base):
    __tablename__ = "hl_team_membership"
    __table_args__ = (
        UniqueConstraint("team_id", "enrollment_id", name="uq_team_membership"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_team.id"), nullable=False, index=True
    )
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, index=True
    )
    membership_type: Mapped[MembershipType] = mapped_column(
        SAEnum(
            MembershipType,
            name="membership_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=MembershipType.MEMBER,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    team = relationship("Team", back_populates="memberships")
    enrollment = relationship("Enrollment")
