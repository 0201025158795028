"""Team membership rules.

An enrollment belongs to at most one team per cohort. A team normally has
at most two mentors; an admin can force a third.
"""

import uuid
from typing import Optional

from fastapi import HTTPException
from libs.common.logging import get_logger
from services.learning_service.models import (
    Cohort,
    Enrollment,
    MembershipType,
    Team,
    TeamMembership,
)
from services.learning_service.services import audit
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

MAX_MENTORS_PER_TEAM = 2


class TeamMembershipError(HTTPException):
    """409 carrying a machine-readable ``code``."""

    def __init__(self, code: str, message: str):
        super().__init__(status_code=409, detail={"code": code, "message": message})
        self.code = code


async def get_team(db: AsyncSession, team_id: uuid.UUID) -> Team:
    result = await db.execute(
        select(Team)
        .options(selectinload(Team.memberships).selectinload(TeamMembership.enrollment))
        .where(Team.id == team_id)
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found.")
    return team


async def create_team(
    db: AsyncSession,
    *,
    cohort_id: uuid.UUID,
    name: str,
    school_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[str] = None,
) -> Team:
    if await db.get(Cohort, cohort_id) is None:
        raise HTTPException(status_code=404, detail="Cohort not found")
    team = Team(cohort_id=cohort_id, name=name, school_id=school_id)
    db.add(team)
    await db.flush()
    audit.log(
        db,
        "team.created",
        actor_user_id=actor_user_id,
        cohort_id=cohort_id,
        entity_type="team",
        entity_id=team.id,
        after_data={"name": name, "school_id": school_id},
    )
    await db.commit()
    await db.refresh(team)
    return team


async def list_members(db: AsyncSession, team_id: uuid.UUID) -> list[TeamMembership]:
    """Mentors first, then members, oldest membership first."""
    result = await db.execute(
        select(TeamMembership)
        .where(TeamMembership.team_id == team_id)
        .order_by(TeamMembership.membership_type.desc(), TeamMembership.created_at)
    )
    return list(result.scalars().all())


async def add_member(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    enrollment_id: uuid.UUID,
    membership_type: MembershipType = MembershipType.MEMBER,
    force_override: bool = False,
    actor_user_id: Optional[str] = None,
) -> TeamMembership:
    team = await db.get(Team, team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found.")
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None or enrollment.cohort_id != team.cohort_id:
        raise HTTPException(status_code=404, detail="Enrollment not found in this cohort.")

    existing = await db.execute(
        select(TeamMembership.team_id)
        .join(Team, Team.id == TeamMembership.team_id)
        .where(
            TeamMembership.enrollment_id == enrollment_id,
            Team.cohort_id == team.cohort_id,
        )
    )
    current_team_id = existing.scalars().first()
    if current_team_id == team_id:
        raise TeamMembershipError("already_member", "This participant is already on the team.")
    if current_team_id is not None:
        raise TeamMembershipError(
            "one_team_per_cohort",
            "This participant already belongs to another team in this cohort.",
        )

    if membership_type == MembershipType.MENTOR and not force_override:
        mentors = (
            await db.execute(
                select(func.count(TeamMembership.id)).where(
                    TeamMembership.team_id == team_id,
                    TeamMembership.membership_type == MembershipType.MENTOR,
                )
            )
        ).scalar_one()
        if mentors >= MAX_MENTORS_PER_TEAM:
            raise TeamMembershipError(
                "max_mentors",
                f"A team can have at most {MAX_MENTORS_PER_TEAM} mentors.",
            )

    membership = TeamMembership(
        team_id=team_id, enrollment_id=enrollment_id, membership_type=membership_type
    )
    db.add(membership)
    await db.flush()
    audit.log(
        db,
        "team.member_added",
        actor_user_id=actor_user_id,
        cohort_id=team.cohort_id,
        entity_type="team",
        entity_id=team_id,
        after_data={
            "enrollment_id": enrollment_id,
            "membership_type": membership_type,
            "force_override": force_override,
        },
    )
    await db.commit()
    await db.refresh(membership)
    return membership


async def remove_member(
    db: AsyncSession,
    *,
    team_id: uuid.UUID,
    enrollment_id: uuid.UUID,
    actor_user_id: Optional[str] = None,
) -> None:
    result = await db.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.enrollment_id == enrollment_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise HTTPException(status_code=404, detail="Membership not found.")

    team = await db.get(Team, team_id)
    await db.delete(membership)
    audit.log(
        db,
        "team.member_removed",
        actor_user_id=actor_user_id,
        cohort_id=team.cohort_id if team else None,
        entity_type="team",
        entity_id=team_id,
        before_data={"enrollment_id": enrollment_id},
    )
    await db.commit()


async def team_ids_for_enrollments(
    db: AsyncSession, enrollment_ids: list[uuid.UUID]
) -> list[uuid.UUID]:
    if not enrollment_ids:
        return []
    result = await db.execute(
        select(TeamMembership.team_id).where(TeamMembership.enrollment_id.in_(enrollment_ids))
    )
    return list(dict.fromkeys(result.scalars().all()))


async def member_enrollment_ids(db: AsyncSession, team_ids: list[uuid.UUID]) -> list[uuid.UUID]:
    if not team_ids:
        return []
    result = await db.execute(
        select(TeamMembership.enrollment_id).where(TeamMembership.team_id.in_(team_ids))
    )
    return list(dict.fromkeys(result.scalars().all()))
