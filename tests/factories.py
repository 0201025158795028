"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    cohort = CohortFactory.create(name="Spring Cohort")
    db_session.add(cohort)
    await db_session.commit()
"""

import uuid
from datetime import date, datetime, timedelta, timezone

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


async def persist(db_session, *instances):
    """Add and commit ``instances``; returns the first one for convenience."""
    db_session.add_all(instances)
    await db_session.commit()
    return instances[0] if instances else None


# ---------------------------------------------------------------------------
# Org units and cohorts
# ---------------------------------------------------------------------------


class OrgUnitFactory:
    @staticmethod
    def create(**overrides):
        from services.learning_service.models import OrgUnit, OrgUnitType

        defaults = {
            "id": _uuid(),
            "name": "Test School",
            "orgunit_type": OrgUnitType.SCHOOL,
            "parent_orgunit_id": None,
        }
        defaults.update(overrides)
        return OrgUnit(**defaults)

    @staticmethod
    def district(**overrides):
        from services.learning_service.models import OrgUnitType

        overrides.setdefault("name", "Test District")
        return OrgUnitFactory.create(orgunit_type=OrgUnitType.DISTRICT, **overrides)


class CohortFactory:
    @staticmethod
    def create(**overrides):
        from services.learning_service.models import Cohort, CohortStatus

        defaults = {
            "id": _uuid(),
            "name": "Test Cohort",
            "code": f"C-{uuid.uuid4().hex[:6]}",
            "status": CohortStatus.ACTIVE,
            "start_date": _today() - timedelta(days=30),
            "end_date": _today() + timedelta(days=300),
            "settings": None,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Cohort(**defaults)


# ---------------------------------------------------------------------------
# Enrollments and teams
# ---------------------------------------------------------------------------


class EnrollmentFactory:
    @staticmethod
    def create(cohort_id=None, **overrides):
        from services.learning_service.models import Enrollment, EnrollmentStatus

        defaults = {
            "id": _uuid(),
            "cohort_id": cohort_id or _uuid(),
            "user_id": f"user-{uuid.uuid4().hex[:8]}",
            "display_name": "Test Participant",
            "email": _unique_email(),
            "roles": ["teacher"],
            "status": EnrollmentStatus.ACTIVE,
            "enrolled_at": _now(),
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Enrollment(**defaults)


class TeamFactory:
    @staticmethod
    def create(cohort_id=None, **overrides):
        from services.learning_service.models import Team

        defaults = {
            "id": _uuid(),
            "cohort_id": cohort_id or _uuid(),
            "name": "Test Team",
            "school_id": None,
        }
        defaults.update(overrides)
        return Team(**defaults)


class TeamMembershipFactory:
    @staticmethod
    def create(team_id=None, enrollment_id=None, **overrides):
        from services.learning_service.models import MembershipType, TeamMembership

        defaults = {
            "id": _uuid(),
            "team_id": team_id or _uuid(),
            "enrollment_id": enrollment_id or _uuid(),
            "membership_type": MembershipType.MEMBER,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return TeamMembership(**defaults)


# ---------------------------------------------------------------------------
# Pathways and activities
# ---------------------------------------------------------------------------


class PathwayFactory:
    @staticmethod
    def create(cohort_id=None, **overrides):
        from services.learning_service.models import Pathway

        defaults = {
            "id": _uuid(),
            "cohort_id": cohort_id or _uuid(),
            "name": "Test Pathway",
            "description": "A pathway used in tests.",
            "target_roles": ["Teacher"],
            "active_status": True,
        }
        defaults.update(overrides)
        return Pathway(**defaults)


class PathwayAssignmentFactory:
    @staticmethod
    def create(enrollment_id=None, pathway_id=None, **overrides):
        from services.learning_service.models import AssignmentType, PathwayAssignment

        defaults = {
            "id": _uuid(),
            "enrollment_id": enrollment_id or _uuid(),
            "pathway_id": pathway_id or _uuid(),
            "assignment_type": AssignmentType.EXPLICIT,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return PathwayAssignment(**defaults)


class ActivityFactory:
    @staticmethod
    def create(pathway=None, **overrides):
        from services.learning_service.models import (
            Activity,
            ActivityStatus,
            ActivityType,
            ActivityVisibility,
        )

        defaults = {
            "id": _uuid(),
            "cohort_id": pathway.cohort_id if pathway else _uuid(),
            "pathway_id": pathway.id if pathway else _uuid(),
            "activity_type": ActivityType.TEACHER_SELF_ASSESSMENT,
            "title": "Test Activity",
            "ordering_hint": 0,
            "weight": 1.0,
            "external_ref": {"form_id": 7},
            "visibility": ActivityVisibility.ALL,
            "status": ActivityStatus.ACTIVE,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Activity(**defaults)


class PrereqGroupFactory:
    @staticmethod
    def create(activity_id=None, prerequisite_ids=(), **overrides):
        from services.learning_service.models import (
            ActivityPrereqGroup,
            ActivityPrereqItem,
            PrereqType,
        )

        defaults = {
            "id": _uuid(),
            "activity_id": activity_id or _uuid(),
            "prereq_type": PrereqType.ALL_OF,
            "n_required": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        group = ActivityPrereqGroup(**defaults)
        group.items = [ActivityPrereqItem(prerequisite_activity_id=aid) for aid in prerequisite_ids]
        return group


class ActivityStateFactory:
    @staticmethod
    def create(enrollment_id=None, activity_id=None, **overrides):
        from services.learning_service.models import ActivityState, CompletionStatus

        defaults = {
            "id": _uuid(),
            "enrollment_id": enrollment_id or _uuid(),
            "activity_id": activity_id or _uuid(),
            "completion_percent": 100.0,
            "completion_status": CompletionStatus.COMPLETE,
            "completed_at": _now(),
            "last_computed_at": _now(),
        }
        defaults.update(overrides)
        return ActivityState(**defaults)


# ---------------------------------------------------------------------------
# Coaching
# ---------------------------------------------------------------------------


class CoachAssignmentFactory:
    @staticmethod
    def create(cohort_id=None, **overrides):
        from services.learning_service.models import CoachAssignment, CoachScopeType

        defaults = {
            "id": _uuid(),
            "coach_user_id": f"coach-{uuid.uuid4().hex[:8]}",
            "coach_name": "Test Coach",
            "coach_email": _unique_email(),
            "scope_type": CoachScopeType.ENROLLMENT,
            "scope_id": _uuid(),
            "cohort_id": cohort_id or _uuid(),
            "effective_from": _today() - timedelta(days=10),
            "effective_to": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return CoachAssignment(**defaults)


class CoachingSessionFactory:
    @staticmethod
    def create(cohort_id=None, mentor_enrollment_id=None, **overrides):
        from services.learning_service.models import (
            AttendanceStatus,
            CoachingSession,
            SessionStatus,
        )

        defaults = {
            "id": _uuid(),
            "cohort_id": cohort_id or _uuid(),
            "coach_user_id": "coach-1",
            "mentor_enrollment_id": mentor_enrollment_id or _uuid(),
            "session_title": "Coaching Session",
            "meeting_url": "https://meet.test/abc",
            "session_datetime": _now() + timedelta(days=3),
            "session_status": SessionStatus.SCHEDULED,
            "attendance_status": AttendanceStatus.UNKNOWN,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return CoachingSession(**defaults)
