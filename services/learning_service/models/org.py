import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.learning_service.models.enums import OrgUnitType, RecordStatus, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# ORGANISATIONAL UNITS
# ============================================================================


class OrgUnit(Base):
    """A district or a school. Schools hang off a district via parent_orgunit_id."""

    __tablename__ = "hl_orgunit"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String, nullable=True, unique=True)
    orgunit_type: Mapped[OrgUnitType] = mapped_column(
        SAEnum(
            OrgUnitType,
            name="orgunit_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    parent_orgunit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("hl_orgunit.id"), nullable=True, index=True
    )
    status: Mapped[RecordStatus] = mapped_column(
        SAEnum(
            RecordStatus,
            name="orgunit_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RecordStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    parent: Mapped[Optional["OrgUnit"]] = relationship(
        "OrgUnit", remote_side="OrgUnit.id", back_populates="children"
    )
    children: Mapped[list["OrgUnit"]] = relationship("OrgUnit", back_populates="parent")

    def __repr__(self):
        return f"<OrgUnit {self.orgunit_type} {self.name}>"
