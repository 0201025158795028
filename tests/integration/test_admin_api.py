"""Admin endpoints, webhooks and the health check."""

import uuid

import pytest
from services.learning_service.models import ActivityType, MembershipType
from tests.factories import (
    ActivityFactory,
    CohortFactory,
    EnrollmentFactory,
    OrgUnitFactory,
    PathwayFactory,
    PrereqGroupFactory,
    TeamFactory,
    TeamMembershipFactory,
    persist,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _chain(db):
    """A pathway with first <- second (second requires first)."""
    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    first = ActivityFactory.create(pathway, title="First")
    second = ActivityFactory.create(pathway, title="Second", ordering_hint=1)
    await persist(db, cohort, pathway, first, second)
    await persist(db, PrereqGroupFactory.create(second.id, [first.id]))
    return cohort, pathway, first, second


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "learning"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_routes_reject_participants(client, as_user):
    as_user("teacher-1")

    response = await client.get("/learning/admin/cohorts")

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Cohorts, org units, enrollments
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_cohort_and_enrollment(client, db_session, as_user):
    district = OrgUnitFactory.district()
    school = OrgUnitFactory.create(parent_orgunit_id=district.id)
    await persist(db_session, district, school)
    as_user("admin-1", role="admin")

    cohort = await client.post(
        "/learning/admin/cohorts",
        json={"name": "Fall Cohort", "code": "FALL", "start_date": "2025-09-01"},
    )
    assert cohort.status_code == 201
    cohort_id = cohort.json()["id"]
    assert cohort.json()["status"] == "future"

    payload = {
        "cohort_id": cohort_id,
        "user_id": "teacher-9",
        "roles": ["teacher", "teacher", "mentor"],
        "school_id": str(school.id),
    }
    enrollment = await client.post("/learning/admin/enrollments", json=payload)
    duplicate = await client.post("/learning/admin/enrollments", json=payload)

    assert enrollment.status_code == 201
    assert enrollment.json()["roles"] == ["teacher", "mentor"]
    assert enrollment.json()["district_id"] == str(district.id)
    assert duplicate.status_code == 409

    audit = await client.get("/learning/admin/audit", params={"cohort_id": cohort_id})
    actions = {entry["action_type"] for entry in audit.json()}
    assert {"cohort.created", "enrollment.created"} <= actions


@pytest.mark.asyncio
@pytest.mark.integration
async def test_school_parent_must_be_district(client, db_session, as_user):
    school = OrgUnitFactory.create()
    await persist(db_session, school)
    as_user("admin-1", role="admin")

    response = await client.post(
        "/learning/admin/orgunits",
        json={"name": "Annex", "orgunit_type": "school", "parent_orgunit_id": str(school.id)},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cohort_status_change(client, db_session, as_user):
    cohort = CohortFactory.create()
    await persist(db_session, cohort)
    as_user("admin-1", role="admin")

    response = await client.post(
        f"/learning/admin/cohorts/{cohort.id}/status", json={"status": "paused"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "paused"


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_team_member_conflicts_carry_a_code(client, db_session, as_user):
    cohort = CohortFactory.create()
    team = TeamFactory.create(cohort_id=cohort.id)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id)
    await persist(db_session, cohort, team, enrollment)
    await persist(
        db_session,
        TeamMembershipFactory.create(team.id, enrollment.id, membership_type=MembershipType.MENTOR),
    )
    as_user("admin-1", role="admin")

    response = await client.post(
        f"/learning/admin/teams/{team.id}/members", json={"enrollment_id": str(enrollment.id)}
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "already_member"


# ---------------------------------------------------------------------------
# Prerequisites
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_prerequisite_cycle_is_rejected(client, db_session, as_user):
    _, _, first, second = await _chain(db_session)
    as_user("admin-1", role="admin")

    response = await client.put(
        f"/learning/admin/activities/{first.id}/prerequisites",
        json={"groups": [{"prereq_type": "all_of", "activity_ids": [str(second.id)]}]},
    )

    assert response.status_code == 409
    assert set(response.json()["detail"]["cycle"]) == {str(first.id), str(second.id)}

    stored = await client.get(f"/learning/admin/activities/{first.id}/prerequisites")
    assert stored.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_validate_prerequisites_is_a_dry_run(client, db_session, as_user):
    _, _, first, second = await _chain(db_session)
    as_user("admin-1", role="admin")

    response = await client.post(
        f"/learning/admin/activities/{first.id}/prerequisites/validate",
        json={"groups": [{"activity_ids": [str(second.id)]}]},
    )

    assert response.status_code == 200
    assert response.json()["valid"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_replace_prerequisites(client, db_session, as_user):
    cohort, pathway, first, second = await _chain(db_session)
    third = ActivityFactory.create(pathway, title="Third", ordering_hint=2)
    await persist(db_session, third)
    as_user("admin-1", role="admin")

    response = await client.put(
        f"/learning/admin/activities/{second.id}/prerequisites",
        json={
            "groups": [
                {"prereq_type": "n_of_m", "n_required": 1, "activity_ids": [str(first.id), str(third.id)]}
            ]
        },
    )

    assert response.status_code == 200
    (group,) = response.json()
    assert group["prereq_type"] == "n_of_m"
    assert set(group["activity_ids"]) == {str(first.id), str(third.id)}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_self_prerequisite_is_rejected(client, db_session, as_user):
    _, _, first, _ = await _chain(db_session)
    as_user("admin-1", role="admin")

    response = await client.put(
        f"/learning/admin/activities/{first.id}/prerequisites",
        json={"groups": [{"activity_ids": [str(first.id)]}]},
    )

    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_course_completed_webhook(client, db_session, as_user):
    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id, user_id="teacher-5")
    course = ActivityFactory.create(
        pathway, activity_type=ActivityType.LEARNDASH_COURSE, external_ref={"course_id": 42}
    )
    other_course = ActivityFactory.create(
        pathway, activity_type=ActivityType.LEARNDASH_COURSE, external_ref={"course_id": 43}
    )
    await persist(db_session, cohort, pathway, enrollment, course, other_course)
    as_user("service:course-platform", role="service_role")

    response = await client.post(
        "/learning/webhooks/course-completed", json={"user_id": "teacher-5", "course_id": 42}
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "updated": 1}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_form_submitted_webhook_rejects_course_activity(client, db_session, as_user):
    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id)
    course = ActivityFactory.create(pathway, activity_type=ActivityType.LEARNDASH_COURSE)
    await persist(db_session, cohort, pathway, enrollment, course)
    as_user("service:form-builder", role="service_role")

    response = await client.post(
        "/learning/webhooks/form-submitted",
        json={"enrollment_id": str(enrollment.id), "activity_id": str(course.id), "record_id": "r1"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhooks_need_a_service_token(client, as_user):
    as_user("teacher-1")

    response = await client.post(
        "/learning/webhooks/course-completed", json={"user_id": "teacher-1", "course_id": 1}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_availability_endpoint(client, db_session, as_user):
    cohort, _, first, second = await _chain(db_session)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id)
    await persist(db_session, enrollment)
    as_user("admin-1", role="admin")

    response = await client.get(
        f"/learning/admin/enrollments/{enrollment.id}/availability/{second.id}"
    )
    missing = await client.get(
        f"/learning/admin/enrollments/{uuid.uuid4()}/availability/{second.id}"
    )

    assert response.json()["availability_status"] == "locked"
    assert response.json()["blockers"] == [str(first.id)]
    assert missing.status_code == 404
