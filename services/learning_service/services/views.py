"""View models for the participant pages: my programs, program, activity, my progress.

Each builder checks ownership the same way: the enrollment in the query
string must belong to the caller, otherwise the page is refused with 403.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from libs.auth.models import AuthUser
from libs.common.datetime_utils import utc_now, utc_today
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityState,
    ActivityStatus,
    ActivityType,
    ActivityVisibility,
    AvailabilityStatus,
    Cohort,
    CohortStatus,
    CompletionStatus,
    Enrollment,
    EnrollmentStatus,
    LockedReason,
    Pathway,
    PrereqType,
)
from services.learning_service.schemas.availability import AvailabilityResult
from services.learning_service.schemas.pages import (
    ActivityAction,
    ActivityCard,
    ActivityPage,
    CoachContact,
    FormEmbed,
    MyProgramsPage,
    MyProgressPage,
    ProgramCard,
    ProgramPage,
)
from services.learning_service.services import (
    coach_assignments,
    integrations,
    pathways,
    reporting,
    rules_engine,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAGE_PREFIX = "/learning"

TYPE_LABELS = {
    ActivityType.LEARNDASH_COURSE: "Course",
    ActivityType.TEACHER_SELF_ASSESSMENT: "Self-Assessment",
    ActivityType.CHILDREN_ASSESSMENT: "Children Assessment",
    ActivityType.COACHING_SESSION_ATTENDANCE: "Coaching Session",
    ActivityType.OBSERVATION: "Observation",
}

FORM_ACTIVITY_TYPES = (
    ActivityType.TEACHER_SELF_ASSESSMENT,
    ActivityType.OBSERVATION,
    ActivityType.CHILDREN_ASSESSMENT,
)

FLASH_MESSAGES = {
    "submitted": "Assessment submitted successfully.",
    "saved": "Draft saved successfully.",
}

MANAGED_BY_COACH = "Managed by your coach."


def parse_id(value: Optional[str]) -> Optional[uuid.UUID]:
    """Loose query-string id: anything unparsable is treated as missing."""
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def type_label(activity_type) -> str:
    value = getattr(activity_type, "value", activity_type)
    try:
        return TYPE_LABELS[ActivityType(value)]
    except (KeyError, ValueError):
        return str(value).replace("_", " ").title()


def format_date(value) -> str:
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def program_url(pathway_id: uuid.UUID, enrollment_id: uuid.UUID) -> str:
    return f"{PAGE_PREFIX}/program?id={pathway_id}&enrollment={enrollment_id}"


def activity_url(activity_id: uuid.UUID, enrollment_id: uuid.UUID) -> str:
    return f"{PAGE_PREFIX}/activity?id={activity_id}&enrollment={enrollment_id}"


def _blocker_display(blockers: list[uuid.UUID], names: dict[uuid.UUID, str]) -> str:
    labels = [names.get(aid, f"#{aid}") for aid in blockers]
    if len(labels) > 3:
        return ", ".join(labels[:3]) + f" +{len(labels) - 3} more"
    return ", ".join(labels)


def lock_reason_text(
    availability: AvailabilityResult,
    names: dict[uuid.UUID, str],
    *,
    detailed: bool = False,
) -> str:
    """Human text for a locked activity.

    ``detailed`` selects the full sentences used on the activity page; the
    program page cards use the short forms.
    """
    if availability.locked_reason == LockedReason.PREREQ:
        if availability.blockers:
            display = _blocker_display(availability.blockers, names)
            if availability.prereq_type == PrereqType.ANY_OF:
                return f"Complete at least one of: {display}"
            if availability.prereq_type == PrereqType.N_OF_M:
                return f"Complete {availability.n_required or 0} of: {display}"
            return f"Complete prerequisites: {display}"
        if detailed:
            return "This activity requires its prerequisites to be completed first."
        return "Complete prerequisites first"

    if availability.locked_reason == LockedReason.DRIP:
        if availability.next_available_at:
            when = format_date(availability.next_available_at)
            if detailed:
                return f"This activity will be available on {when}."
            return f"Available on {when}"
        return "This activity is not yet available." if detailed else "Not yet available"

    return "This activity is currently locked." if detailed else "Locked"


def program_status(pathway: Pathway, cohort: Optional[Cohort], overall: int, today: date) -> str:
    if pathway.expiration_date and pathway.expiration_date < today:
        return "Expired"
    if overall >= 100:
        return "Completed"
    if cohort is not None and cohort.status == CohortStatus.PAUSED:
        return "Paused"
    return "Active"


def card_status_label(percent: int) -> str:
    if percent <= 0:
        return "Not Started"
    if percent >= 100:
        return "Completed"
    return "In Progress"


def activity_action(
    activity: Activity,
    availability: AvailabilityResult,
    enrollment_id: uuid.UUID,
    course_url: Optional[str],
) -> Optional[ActivityAction]:
    """Action for an activity card. Only available activities get one."""
    if availability.availability_status != AvailabilityStatus.AVAILABLE:
        return None

    if activity.activity_type == ActivityType.LEARNDASH_COURSE:
        if course_url:
            return ActivityAction(label="Start Course", url=course_url)
        return None
    if activity.activity_type in FORM_ACTIVITY_TYPES:
        return ActivityAction(label="Start", url=activity_url(activity.id, enrollment_id))
    if activity.activity_type == ActivityType.COACHING_SESSION_ATTENDANCE:
        return ActivityAction(message=MANAGED_BY_COACH)
    return None


# ---------------------------------------------------------------------------
# Shared loading
# ---------------------------------------------------------------------------


async def visible_activities(db: AsyncSession, pathway_id: uuid.UUID) -> list[Activity]:
    """Active, participant-visible activities of a pathway in display order."""
    result = await db.execute(
        select(Activity)
        .where(
            Activity.pathway_id == pathway_id,
            Activity.status == ActivityStatus.ACTIVE,
            Activity.visibility != ActivityVisibility.STAFF_ONLY,
        )
        .order_by(Activity.ordering_hint, Activity.title)
    )
    return list(result.scalars().all())


async def _blocker_names(
    db: AsyncSession, results: dict[uuid.UUID, AvailabilityResult]
) -> dict[uuid.UUID, str]:
    blocker_ids = {aid for r in results.values() for aid in r.blockers}
    if not blocker_ids:
        return {}
    rows = await db.execute(select(Activity.id, Activity.title).where(Activity.id.in_(blocker_ids)))
    return {aid: title for aid, title in rows.all()}


async def collect_progress(
    db: AsyncSession,
    enrollment: Enrollment,
    activities: list[Activity],
    now: Optional[datetime] = None,
) -> list[dict]:
    """Per-activity availability and display percent for one enrollment."""
    availability = await rules_engine.compute_pathway_availability(
        db, enrollment.id, [a.id for a in activities], now
    )
    states_result = await db.execute(
        select(ActivityState).where(ActivityState.enrollment_id == enrollment.id)
    )
    states = {s.activity_id: s for s in states_result.scalars().all()}

    entries = []
    for activity in activities:
        result = availability[activity.id]
        state = states.get(activity.id)
        percent = float(state.completion_percent or 0) if state else 0.0
        status = state.completion_status if state else CompletionStatus.NOT_STARTED
        completed_at = state.completed_at if state else None

        course_url = None
        course_id = None
        if activity.activity_type == ActivityType.LEARNDASH_COURSE:
            course_id = integrations.course_id_from_ref(activity.external_ref)
        if course_id:
            course_url = await integrations.get_course_url(course_id)
            if result.availability_status != AvailabilityStatus.COMPLETED:
                live = await integrations.get_course_progress_percent(enrollment.user_id, course_id)
                percent = max(percent, live)

        if result.availability_status == AvailabilityStatus.COMPLETED:
            percent = 100.0
            status = CompletionStatus.COMPLETE

        entries.append(
            {
                "activity": activity,
                "availability": result,
                "percent": percent,
                "status": status,
                "completed_at": completed_at,
                "course_url": course_url,
            }
        )
    return entries


def entries_percent(entries: list[dict]) -> int:
    return reporting.overall_percent(
        (entry["activity"].weight, entry["percent"]) for entry in entries
    )


async def _owned_enrollment(
    db: AsyncSession, user: AuthUser, enrollment_id: uuid.UUID, denied: str
) -> Enrollment:
    enrollment = await db.get(Enrollment, enrollment_id)
    if enrollment is None or enrollment.user_id != user.user_id:
        raise HTTPException(status_code=403, detail=denied)
    return enrollment


async def active_enrollments_for(db: AsyncSession, user_id: str) -> list[Enrollment]:
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.user_id == user_id, Enrollment.status == EnrollmentStatus.ACTIVE)
        .order_by(Enrollment.enrolled_at, Enrollment.id)
    )
    return list(result.scalars().all())


def coach_contact(assignment) -> Optional[CoachContact]:
    if assignment is None:
        return None
    return CoachContact(
        coach_user_id=assignment.coach_user_id,
        name=assignment.coach_name,
        email=assignment.coach_email,
    )


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


async def build_my_programs(
    db: AsyncSession, user: AuthUser, now: Optional[datetime] = None
) -> MyProgramsPage:
    enrollments = await active_enrollments_for(db, user.user_id)

    cards: list[ProgramCard] = []
    for enrollment in enrollments:
        cohort = await db.get(Cohort, enrollment.cohort_id)
        if cohort is None:
            continue
        for pathway, _ in await pathways.get_pathways_for_enrollment(db, enrollment):
            activities = await visible_activities(db, pathway.id)
            entries = await collect_progress(db, enrollment, activities, now)
            percent = entries_percent(entries)
            cards.append(
                ProgramCard(
                    enrollment_id=enrollment.id,
                    pathway_id=pathway.id,
                    pathway_name=pathway.name,
                    cohort_id=cohort.id,
                    cohort_name=cohort.name,
                    featured_image_url=pathway.featured_image_url,
                    completion_percent=percent,
                    status_label=card_status_label(percent),
                    action_label="Continue" if percent > 0 else "Start",
                    program_url=program_url(pathway.id, enrollment.id),
                )
            )

    coach = None
    for enrollment in enrollments:
        coach = await coach_assignments.get_coach_for_enrollment(db, enrollment)
        if coach:
            break

    return MyProgramsPage(coach=coach_contact(coach), programs=cards)


async def build_program_page(
    db: AsyncSession,
    user: AuthUser,
    *,
    pathway_id: Optional[uuid.UUID],
    enrollment_id: Optional[uuid.UUID],
    now: Optional[datetime] = None,
) -> ProgramPage:
    if not pathway_id or not enrollment_id:
        raise HTTPException(
            status_code=400, detail="Invalid program link. Please go back to My Programs."
        )

    pathway = await db.get(Pathway, pathway_id)
    if pathway is None:
        raise HTTPException(status_code=404, detail="Program not found.")

    enrollment = await _owned_enrollment(
        db, user, enrollment_id, "You do not have access to this program."
    )
    if not await pathways.enrollment_has_pathway(db, enrollment, pathway.id):
        raise HTTPException(
            status_code=403, detail="This program is not assigned to your enrollment."
        )

    cohort = await db.get(Cohort, enrollment.cohort_id)
    return await program_view(db, enrollment, pathway, cohort, now)


async def program_view(
    db: AsyncSession,
    enrollment: Enrollment,
    pathway: Pathway,
    cohort: Optional[Cohort],
    now: Optional[datetime] = None,
) -> ProgramPage:
    activities = await visible_activities(db, pathway.id)
    entries = await collect_progress(db, enrollment, activities, now)
    names = await _blocker_names(db, {e["activity"].id: e["availability"] for e in entries})

    cards = []
    for entry in entries:
        activity = entry["activity"]
        result: AvailabilityResult = entry["availability"]
        percent = int(entry["percent"])
        lock_reason = None

        if result.availability_status == AvailabilityStatus.COMPLETED:
            status_text = (
                f"Completed {format_date(entry['completed_at'])}"
                if entry["completed_at"]
                else "Completed"
            )
        elif result.is_locked:
            lock_reason = lock_reason_text(result, names)
            status_text = lock_reason
        else:
            status_text = f"{percent}% complete" if percent > 0 else "Not started"

        cards.append(
            ActivityCard(
                activity_id=activity.id,
                title=activity.title,
                activity_type=activity.activity_type,
                type_label=type_label(activity.activity_type),
                availability=result,
                completion_percent=percent,
                completion_status=entry["status"],
                completed_at=entry["completed_at"],
                status_text=status_text,
                lock_reason=lock_reason,
                action=activity_action(activity, result, enrollment.id, entry["course_url"]),
            )
        )

    overall = entries_percent(entries)
    today = now.date() if now else utc_today()
    return ProgramPage(
        pathway_id=pathway.id,
        pathway_name=pathway.name,
        description=pathway.description,
        objectives=pathway.objectives,
        syllabus_url=pathway.syllabus_url,
        featured_image_url=pathway.featured_image_url,
        avg_completion_time=pathway.avg_completion_time,
        expiration_date=pathway.expiration_date,
        enrollment_id=enrollment.id,
        cohort_id=enrollment.cohort_id,
        cohort_name=cohort.name if cohort else None,
        overall_percent=overall,
        program_status=program_status(pathway, cohort, overall, today),
        activities=cards,
    )


async def build_my_progress(
    db: AsyncSession, user: AuthUser, now: Optional[datetime] = None
) -> MyProgressPage:
    """Every program of every active enrollment, with activity detail."""
    programs = []
    for enrollment in await active_enrollments_for(db, user.user_id):
        cohort = await db.get(Cohort, enrollment.cohort_id)
        for pathway, _ in await pathways.get_pathways_for_enrollment(db, enrollment):
            programs.append(await program_view(db, enrollment, pathway, cohort, now))
    return MyProgressPage(programs=programs)


async def build_activity_page(
    db: AsyncSession,
    user: AuthUser,
    *,
    activity_id: Optional[uuid.UUID],
    enrollment_id: Optional[uuid.UUID],
    instance_id: Optional[str] = None,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ActivityPage:
    if not activity_id or not enrollment_id:
        raise HTTPException(status_code=400, detail="Invalid activity link.")

    activity = await db.get(Activity, activity_id)
    if activity is None or activity.status != ActivityStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Activity not found.")

    denied = "You do not have access to this activity."
    enrollment = await _owned_enrollment(db, user, enrollment_id, denied)
    if activity.cohort_id != enrollment.cohort_id:
        raise HTTPException(status_code=403, detail=denied)

    pathway = await db.get(Pathway, activity.pathway_id)
    availability = await rules_engine.compute_availability(db, enrollment.id, activity.id, now)

    page = ActivityPage(
        activity_id=activity.id,
        title=activity.title,
        description=activity.description,
        activity_type=activity.activity_type,
        type_label=type_label(activity.activity_type),
        enrollment_id=enrollment.id,
        pathway_id=activity.pathway_id,
        pathway_name=pathway.name if pathway else None,
        program_url=program_url(activity.pathway_id, enrollment.id),
        view=availability.availability_status,
        flash_message=FLASH_MESSAGES.get(message or ""),
        instance_id=instance_id,
    )

    if availability.is_locked:
        names = await _blocker_names(db, {activity.id: availability})
        page.lock_reason = lock_reason_text(availability, names, detailed=True)
        return page

    if availability.availability_status == AvailabilityStatus.COMPLETED:
        page.notice = "This activity has been completed."
        return page

    await _fill_available_view(page, activity, enrollment, instance_id)
    return page


async def _fill_available_view(
    page: ActivityPage, activity: Activity, enrollment: Enrollment, instance_id: Optional[str]
) -> None:
    activity_type = activity.activity_type

    if activity_type == ActivityType.LEARNDASH_COURSE:
        course_id = integrations.course_id_from_ref(activity.external_ref)
        if course_id:
            page.redirect_url = await integrations.get_course_url(course_id)
        if not page.redirect_url:
            page.notice = "This course is not available right now."
        return

    if activity_type in (ActivityType.TEACHER_SELF_ASSESSMENT, ActivityType.OBSERVATION):
        try:
            form_id = int(activity.ref("form_id") or 0)
        except (TypeError, ValueError):
            form_id = 0
        if not form_id:
            page.notice = "No form has been configured for this activity."
            return
        hidden_fields = {
            "hl_enrollment_id": str(enrollment.id),
            "hl_activity_id": str(activity.id),
            "hl_cohort_id": str(enrollment.cohort_id),
        }
        if instance_id:
            hidden_fields["hl_instance_id"] = instance_id
        page.form = FormEmbed(
            form_id=form_id,
            hidden_fields=hidden_fields,
            html=await integrations.get_form_embed(form_id, hidden_fields),
        )
        return

    if activity_type == ActivityType.CHILDREN_ASSESSMENT:
        page.notice = "Please visit the Children Assessment page to complete this activity."
        return

    if activity_type == ActivityType.COACHING_SESSION_ATTENDANCE:
        page.notice = MANAGED_BY_COACH
        return

    page.notice = "This activity type is not yet supported for inline display."
