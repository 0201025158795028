"""Learning service models."""

from services.learning_service.models.audit import AuditLog
from services.learning_service.models.coaching import CoachAssignment, CoachingSession
from services.learning_service.models.cohort import Cohort
from services.learning_service.models.enrollment import Enrollment, Team, TeamMembership
from services.learning_service.models.enums import (
    TERMINAL_SESSION_STATUSES,
    ActivityStatus,
    ActivityType,
    ActivityVisibility,
    AssignmentType,
    AttendanceStatus,
    AvailabilityStatus,
    CoachScopeType,
    CohortStatus,
    CompletionStatus,
    DripType,
    EnrollmentRole,
    EnrollmentStatus,
    LockedReason,
    MembershipType,
    OrgUnitType,
    OverrideType,
    PrereqType,
    RecordStatus,
    SessionStatus,
)
from services.learning_service.models.org import OrgUnit
from services.learning_service.models.pathway import (
    Activity,
    ActivityDripRule,
    ActivityOverride,
    ActivityPrereqGroup,
    ActivityPrereqItem,
    Pathway,
    PathwayAssignment,
)
from services.learning_service.models.progress import ActivityState, CompletionRollup

__all__ = [
    "Activity",
    "ActivityDripRule",
    "ActivityOverride",
    "ActivityPrereqGroup",
    "ActivityPrereqItem",
    "ActivityState",
    "ActivityStatus",
    "ActivityType",
    "ActivityVisibility",
    "AssignmentType",
    "AttendanceStatus",
    "AuditLog",
    "AvailabilityStatus",
    "CoachAssignment",
    "CoachScopeType",
    "CoachingSession",
    "Cohort",
    "CohortStatus",
    "CompletionRollup",
    "CompletionStatus",
    "DripType",
    "Enrollment",
    "EnrollmentRole",
    "EnrollmentStatus",
    "LockedReason",
    "MembershipType",
    "OrgUnit",
    "OrgUnitType",
    "OverrideType",
    "Pathway",
    "PathwayAssignment",
    "PrereqType",
    "RecordStatus",
    "SessionStatus",
    "TERMINAL_SESSION_STATUSES",
    "Team",
    "TeamMembership",
]
