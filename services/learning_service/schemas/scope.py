import uuid

from pydantic import BaseModel, Field


class Scope(BaseModel):
    """What the caller may see.

    For admins every id list is empty, meaning "no restriction".
    """

    user_id: str
    is_admin: bool = False
    is_staff: bool = False
    is_coach: bool = False
    cohort_ids: list[uuid.UUID] = Field(default_factory=list)
    school_ids: list[uuid.UUID] = Field(default_factory=list)
    district_ids: list[uuid.UUID] = Field(default_factory=list)
    team_ids: list[uuid.UUID] = Field(default_factory=list)
    enrollment_ids: list[uuid.UUID] = Field(default_factory=list)
    hl_roles: list[str] = Field(default_factory=list)

    def can_view_cohort(self, cohort_id: uuid.UUID) -> bool:
        return self.is_admin or cohort_id in self.cohort_ids

    def can_view_school(self, school_id: uuid.UUID) -> bool:
        return self.is_admin or school_id in self.school_ids

    def can_view_district(self, district_id: uuid.UUID) -> bool:
        return self.is_admin or district_id in self.district_ids

    def can_view_team(self, team_id: uuid.UUID) -> bool:
        return self.is_admin or team_id in self.team_ids

    def has_role(self, role: str) -> bool:
        return role in self.hl_roles

    @property
    def is_mentor_only(self) -> bool:
        """Mentors without any leader role see only their own team."""
        return (
            not self.is_staff
            and self.has_role("mentor")
            and not self.has_role("school_leader")
            and not self.has_role("district_leader")
        )
