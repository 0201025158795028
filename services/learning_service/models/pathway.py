import uuid
from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import (
    ActivityStatus,
    ActivityType,
    ActivityVisibility,
    AssignmentType,
    DripType,
    OverrideType,
    PrereqType,
    enum_values,
)
from sqlalchemy import JSON, Boolean, Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# PATHWAYS
# ============================================================================


class Pathway(Base):
    __tablename__ = "hl_pathway"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    objectives: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    syllabus_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    featured_image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    avg_completion_time: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Display names of enrollment roles this pathway targets, e.g. ["Teacher", "Mentor"]
    target_roles: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    active_status: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    cohort = relationship("Cohort", back_populates="pathways")
    activities = relationship(
        "Activity", back_populates="pathway", order_by="Activity.ordering_hint"
    )

    def __repr__(self):
        return f"<Pathway {self.name}>"


class PathwayAssignment(Base):
    __tablename__ = "hl_pathway_assignment"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "pathway_id", name="uq_pathway_assignment"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, index=True
    )
    pathway_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_pathway.id"), nullable=False, index=True
    )
    assignment_type: Mapped[AssignmentType] = mapped_column(
        SAEnum(
            AssignmentType,
            name="pathway_assignment_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=AssignmentType.EXPLICIT,
    )
    assigned_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    pathway = relationship("Pathway")


# ============================================================================
# ACTIVITIES & GATING RULES
# ============================================================================


class Activity(Base):
    __tablename__ = "hl_activity"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_cohort.id"), nullable=False, index=True
    )
    pathway_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_pathway.id"), nullable=False, index=True
    )
    activity_type: Mapped[ActivityType] = mapped_column(
        SAEnum(
            ActivityType,
            name="activity_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ordering_hint: Mapped[int] = mapped_column(Integer, default=0)
    weight: Mapped[float] = mapped_column(Float, default=1.0)

    # Pointer into the owning integration, e.g. {"course_id": 42} or {"form_id": 7}
    external_ref: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    visibility: Mapped[ActivityVisibility] = mapped_column(
        SAEnum(
            ActivityVisibility,
            name="activity_visibility_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ActivityVisibility.ALL,
    )
    status: Mapped[ActivityStatus] = mapped_column(
        SAEnum(
            ActivityStatus,
            name="activity_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ActivityStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    pathway = relationship("Pathway", back_populates="activities")
    prereq_groups = relationship(
        "ActivityPrereqGroup", back_populates="activity", cascade="all, delete-orphan"
    )
    drip_rules = relationship(
        "ActivityDripRule",
        back_populates="activity",
        cascade="all, delete-orphan",
        foreign_keys="ActivityDripRule.activity_id",
    )

    def ref(self, key: str):
        return (self.external_ref or {}).get(key)

    def __repr__(self):
        return f"<Activity {self.activity_type} {self.title}>"


class ActivityPrereqGroup(Base):
    """One combinator over a set of prerequisite activities. Groups are ANDed."""

    __tablename__ = "hl_activity_prereq_group"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=False, index=True
    )
    prereq_type: Mapped[PrereqType] = mapped_column(
        SAEnum(
            PrereqType,
            name="prereq_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PrereqType.ALL_OF,
    )
    n_required: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    activity = relationship("Activity", back_populates="prereq_groups")
    items = relationship(
        "ActivityPrereqItem", back_populates="group", cascade="all, delete-orphan"
    )


class ActivityPrereqItem(Base):
    __tablename__ = "hl_activity_prereq_item"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity_prereq_group.id"), nullable=False, index=True
    )
    prerequisite_activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=False
    )

    group = relationship("ActivityPrereqGroup", back_populates="items")


class ActivityDripRule(Base):
    __tablename__ = "hl_activity_drip_rule"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=False, index=True
    )
    drip_type: Mapped[DripType] = mapped_column(
        SAEnum(
            DripType,
            name="drip_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    release_at_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    base_activity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=True
    )
    delay_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    activity = relationship(
        "Activity", back_populates="drip_rules", foreign_keys=[activity_id]
    )


class ActivityOverride(Base):
    """Per-enrollment exception to gating. The newest row wins."""

    __tablename__ = "hl_activity_override"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_enrollment.id"), nullable=False, index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hl_activity.id"), nullable=False, index=True
    )
    override_type: Mapped[OverrideType] = mapped_column(
        SAEnum(
            OverrideType,
            name="override_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    applied_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
