"""Enum definitions for learning service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrgUnitType(str, enum.Enum):
    DISTRICT = "district"
    SCHOOL = "school"


class RecordStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CohortStatus(str, enum.Enum):
    ACTIVE = "active"
    FUTURE = "future"
    PAUSED = "paused"
    ARCHIVED = "archived"


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class EnrollmentRole(str, enum.Enum):
    TEACHER = "teacher"
    MENTOR = "mentor"
    SCHOOL_LEADER = "school_leader"
    DISTRICT_LEADER = "district_leader"


class MembershipType(str, enum.Enum):
    MENTOR = "mentor"
    MEMBER = "member"


class AssignmentType(str, enum.Enum):
    EXPLICIT = "explicit"
    ROLE_DEFAULT = "role_default"


class ActivityType(str, enum.Enum):
    LEARNDASH_COURSE = "learndash_course"
    TEACHER_SELF_ASSESSMENT = "teacher_self_assessment"
    CHILDREN_ASSESSMENT = "children_assessment"
    COACHING_SESSION_ATTENDANCE = "coaching_session_attendance"
    OBSERVATION = "observation"


class ActivityVisibility(str, enum.Enum):
    ALL = "all"
    STAFF_ONLY = "staff_only"


class ActivityStatus(str, enum.Enum):
    ACTIVE = "active"
    REMOVED = "removed"


class PrereqType(str, enum.Enum):
    ALL_OF = "all_of"
    ANY_OF = "any_of"
    N_OF_M = "n_of_m"


class DripType(str, enum.Enum):
    FIXED_DATE = "fixed_date"
    AFTER_COMPLETION_DELAY = "after_completion_delay"


class OverrideType(str, enum.Enum):
    EXEMPT = "exempt"
    MANUAL_UNLOCK = "manual_unlock"
    GRACE_UNLOCK = "grace_unlock"


class CompletionStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class AvailabilityStatus(str, enum.Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    COMPLETED = "completed"


class LockedReason(str, enum.Enum):
    PREREQ = "prereq"
    DRIP = "drip"


class CoachScopeType(str, enum.Enum):
    SCHOOL = "school"
    TEAM = "team"
    ENROLLMENT = "enrollment"


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ATTENDED = "attended"
    MISSED = "missed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


TERMINAL_SESSION_STATUSES = frozenset(
    {
        SessionStatus.ATTENDED,
        SessionStatus.MISSED,
        SessionStatus.CANCELLED,
        SessionStatus.RESCHEDULED,
    }
)


class AttendanceStatus(str, enum.Enum):
    UNKNOWN = "unknown"
    ATTENDED = "attended"
    MISSED = "missed"
