"""Participant page endpoints under /learning."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from services.learning_service.models import ActivityType, DripType, OverrideType
from tests.factories import (
    ActivityFactory,
    ActivityStateFactory,
    CoachAssignmentFactory,
    CohortFactory,
    EnrollmentFactory,
    PathwayAssignmentFactory,
    PathwayFactory,
    PrereqGroupFactory,
    persist,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _program(db, user_id="teacher-1"):
    """Cohort, enrollment and a two-step pathway where step two requires step one."""
    cohort = CohortFactory.create(name="Spring Cohort")
    pathway = PathwayFactory.create(cohort_id=cohort.id, name="Teacher Pathway")
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id, user_id=user_id)
    first = ActivityFactory.create(pathway, title="Self-Assessment", ordering_hint=1)
    second = ActivityFactory.create(pathway, title="Observation", ordering_hint=2,
                                    activity_type=ActivityType.OBSERVATION)
    await persist(db, cohort, pathway, enrollment, first, second)
    await persist(
        db,
        PathwayAssignmentFactory.create(enrollment.id, pathway.id),
        PrereqGroupFactory.create(second.id, [first.id]),
    )
    return cohort, pathway, enrollment, first, second


# ---------------------------------------------------------------------------
# My Programs
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_programs_lists_assigned_pathways(client, db_session, as_user):
    cohort, pathway, enrollment, first, _ = await _program(db_session)
    await persist(
        db_session,
        CoachAssignmentFactory.create(
            cohort_id=cohort.id, scope_id=enrollment.id, coach_name="Coach Carter"
        ),
        ActivityStateFactory.create(enrollment.id, first.id),
    )
    as_user("teacher-1")

    response = await client.get("/learning/my-programs")

    assert response.status_code == 200
    data = response.json()
    assert data["coach"]["name"] == "Coach Carter"
    (card,) = data["programs"]
    assert card["pathway_name"] == "Teacher Pathway"
    assert card["completion_percent"] == 50
    assert card["status_label"] == "In Progress"
    assert card["action_label"] == "Continue"
    assert card["program_url"] == (
        f"/learning/program?id={pathway.id}&enrollment={enrollment.id}"
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_programs_is_empty_without_enrollments(client, as_user):
    as_user("nobody")

    response = await client.get("/learning/my-programs")

    assert response.status_code == 200
    assert response.json() == {"coach": None, "programs": []}


# ---------------------------------------------------------------------------
# Program page
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_program_page_locks_dependent_activity(client, db_session, as_user):
    _, pathway, enrollment, first, second = await _program(db_session)
    as_user("teacher-1")

    response = await client.get(
        "/learning/program", params={"id": str(pathway.id), "enrollment": str(enrollment.id)}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["overall_percent"] == 0
    assert data["program_status"] == "Active"
    cards = {card["title"]: card for card in data["activities"]}

    open_card = cards["Self-Assessment"]
    assert open_card["availability"]["availability_status"] == "available"
    assert open_card["action"]["url"] == (
        f"/learning/activity?id={first.id}&enrollment={enrollment.id}"
    )

    locked_card = cards["Observation"]
    assert locked_card["availability"]["availability_status"] == "locked"
    assert locked_card["lock_reason"] == "Complete prerequisites: Self-Assessment"
    assert locked_card["action"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_program_page_forbidden_for_other_users(client, db_session, as_user):
    _, pathway, enrollment, _, _ = await _program(db_session)
    as_user("someone-else")

    response = await client.get(
        "/learning/program", params={"id": str(pathway.id), "enrollment": str(enrollment.id)}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "params",
    [{}, {"id": "abc", "enrollment": "def"}, {"id": str(uuid.uuid4())}],
)
async def test_program_page_rejects_bad_links(client, as_user, params):
    as_user("teacher-1")

    response = await client.get("/learning/program", params=params)

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_program_page_unassigned_pathway_is_forbidden(client, db_session, as_user):
    cohort, _, enrollment, _, _ = await _program(db_session)
    other = PathwayFactory.create(cohort_id=cohort.id, name="Leader Pathway", target_roles=[])
    await persist(db_session, other)
    as_user("teacher-1")

    response = await client.get(
        "/learning/program", params={"id": str(other.id), "enrollment": str(enrollment.id)}
    )

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Activity page
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_activity_page_embeds_form(client, db_session, as_user):
    _, _, enrollment, first, _ = await _program(db_session)
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity",
        params={"id": str(first.id), "enrollment": str(enrollment.id), "message": "submitted"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["view"] == "available"
    assert data["flash_message"] == "Assessment submitted successfully."
    assert data["form"]["form_id"] == 7
    assert data["form"]["hidden_fields"]["hl_enrollment_id"] == str(enrollment.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_activity_page_locked_view(client, db_session, as_user):
    _, _, enrollment, _, second = await _program(db_session)
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity", params={"id": str(second.id), "enrollment": str(enrollment.id)}
    )

    data = response.json()
    assert data["view"] == "locked"
    assert data["lock_reason"] == "Complete prerequisites: Self-Assessment"
    assert data["form"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_locked_course_never_redirects(client, db_session, as_user):
    from services.learning_service.models import ActivityDripRule

    cohort, pathway, enrollment, _, _ = await _program(db_session)
    course = ActivityFactory.create(
        pathway,
        title="Course",
        activity_type=ActivityType.LEARNDASH_COURSE,
        external_ref={"course_id": 42},
    )
    await persist(db_session, course)
    await persist(
        db_session,
        ActivityDripRule(
            activity_id=course.id,
            drip_type=DripType.FIXED_DATE,
            release_at_date=datetime.now(timezone.utc) + timedelta(days=5),
        ),
    )
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity", params={"id": str(course.id), "enrollment": str(enrollment.id)}
    )

    data = response.json()
    assert data["view"] == "locked"
    assert data["redirect_url"] is None
    assert data["lock_reason"].startswith("This activity will be available on")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_available_course_redirects(client, db_session, as_user):
    from services.learning_service.models import ActivityOverride

    _, pathway, enrollment, _, _ = await _program(db_session)
    course = ActivityFactory.create(
        pathway,
        title="Course",
        activity_type=ActivityType.LEARNDASH_COURSE,
        external_ref={"course_id": 42},
    )
    await persist(db_session, course)
    await persist(
        db_session,
        ActivityOverride(
            enrollment_id=enrollment.id,
            activity_id=course.id,
            override_type=OverrideType.MANUAL_UNLOCK,
        ),
    )
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity", params={"id": str(course.id), "enrollment": str(enrollment.id)}
    )

    assert response.json()["redirect_url"] == "https://courses.test/course/42"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_activity_from_other_cohort_is_forbidden(client, db_session, as_user):
    _, _, enrollment, _, _ = await _program(db_session)
    other_cohort = CohortFactory.create(name="Other")
    other_pathway = PathwayFactory.create(cohort_id=other_cohort.id)
    foreign = ActivityFactory.create(other_pathway)
    await persist(db_session, other_cohort, other_pathway, foreign)
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity", params={"id": str(foreign.id), "enrollment": str(enrollment.id)}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_completed_activity_view(client, db_session, as_user):
    _, _, enrollment, first, _ = await _program(db_session)
    await persist(db_session, ActivityStateFactory.create(enrollment.id, first.id))
    as_user("teacher-1")

    response = await client.get(
        "/learning/activity", params={"id": str(first.id), "enrollment": str(enrollment.id)}
    )

    data = response.json()
    assert data["view"] == "completed"
    assert data["notice"] == "This activity has been completed."


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_me_scope(client, db_session, as_user):
    cohort, _, enrollment, _, _ = await _program(db_session)
    as_user("teacher-1")

    response = await client.get("/learning/me/scope")

    assert response.status_code == 200
    data = response.json()
    assert data["cohort_ids"] == [str(cohort.id)]
    assert data["enrollment_ids"] == [str(enrollment.id)]
    assert data["hl_roles"] == ["teacher"]
