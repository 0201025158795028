"""Scoped listings, team pages and reports."""

import pytest
from services.learning_service.models import MembershipType, SessionStatus
from tests.factories import (
    CoachingSessionFactory,
    CohortFactory,
    EnrollmentFactory,
    OrgUnitFactory,
    TeamFactory,
    TeamMembershipFactory,
    persist,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _two_cohorts(db):
    """Cohort A holds a school with two teams; cohort B is unrelated."""
    district = OrgUnitFactory.district(name="North District")
    school = OrgUnitFactory.create(name="Maple School", parent_orgunit_id=district.id)
    cohort_a = CohortFactory.create(name="A Cohort")
    cohort_b = CohortFactory.create(name="B Cohort")
    mentor = EnrollmentFactory.create(
        cohort_id=cohort_a.id,
        user_id="mentor-1",
        display_name="Mina Mentor",
        school_id=school.id,
        roles=["mentor"],
    )
    teammate = EnrollmentFactory.create(
        cohort_id=cohort_a.id, display_name="Tara Teammate", school_id=school.id
    )
    outsider = EnrollmentFactory.create(
        cohort_id=cohort_a.id, display_name="Oscar Outsider", school_id=school.id
    )
    elsewhere = EnrollmentFactory.create(cohort_id=cohort_b.id, display_name="Eve Elsewhere")
    team = TeamFactory.create(cohort_id=cohort_a.id, name="Blue Team", school_id=school.id)
    other_team = TeamFactory.create(cohort_id=cohort_a.id, name="Red Team", school_id=school.id)
    await persist(
        db, district, school, cohort_a, cohort_b, mentor, teammate, outsider, elsewhere,
        team, other_team,
    )
    await persist(
        db,
        TeamMembershipFactory.create(team.id, mentor.id, membership_type=MembershipType.MENTOR),
        TeamMembershipFactory.create(team.id, teammate.id),
        TeamMembershipFactory.create(other_team.id, outsider.id),
    )
    return {
        "district": district,
        "school": school,
        "cohort_a": cohort_a,
        "cohort_b": cohort_b,
        "mentor": mentor,
        "teammate": teammate,
        "outsider": outsider,
        "team": team,
        "other_team": other_team,
    }


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_cohort_listing_paginates(client, db_session, as_user):
    await persist(db_session, *[CohortFactory.create(name=f"Cohort {i:02d}") for i in range(26)])
    as_user("admin-1", role="admin")

    first = await client.get("/learning/cohorts")
    second = await client.get("/learning/cohorts", params={"paged": "2"})
    garbage = await client.get("/learning/cohorts", params={"paged": "zero"})

    assert first.status_code == 200
    assert first.json()["total"] == 26
    assert first.json()["total_pages"] == 2
    assert len(first.json()["items"]) == 25
    assert [row["name"] for row in second.json()["items"]] == ["Cohort 25"]
    assert garbage.json()["page"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_participant_sees_only_own_cohorts(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user(data["outsider"].user_id)

    response = await client.get("/learning/cohorts")

    assert [row["name"] for row in response.json()["items"]] == ["A Cohort"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_user_without_enrollments_is_denied(client, as_user):
    as_user("stranger")

    response = await client.get("/learning/learners")

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mentor_sees_only_own_team_members(client, db_session, as_user):
    await _two_cohorts(db_session)
    as_user("mentor-1")

    learners = await client.get("/learning/learners")
    teams = await client.get("/learning/teams")

    names = [row["display_name"] for row in learners.json()["items"]]
    assert names == ["Mina Mentor", "Tara Teammate"]
    assert [row["name"] for row in teams.json()["items"]] == ["Blue Team"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_learner_listing_filters_by_cohort_alias(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("admin-1", role="admin")

    response = await client.get(
        "/learning/learners", params={"hl_track_id": str(data["cohort_b"].id)}
    )

    assert [row["display_name"] for row in response.json()["items"]] == ["Eve Elsewhere"]


# ---------------------------------------------------------------------------
# Team pages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_team_page_for_member(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("mentor-1")

    response = await client.get("/learning/team", params={"id": str(data["team"].id)})

    assert response.status_code == 200
    body = response.json()
    assert body["school_name"] == "Maple School"
    assert [m["membership_type"] for m in body["members"]] == ["mentor", "member"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_team_page_forbidden_for_other_team(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user(data["outsider"].user_id)

    response = await client.get("/learning/team", params={"id": str(data["team"].id)})

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_team_page_bad_link(client, as_user):
    as_user("mentor-1")

    response = await client.get("/learning/team", params={"id": "nope"})

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_team_renders_single_team_inline(client, db_session, as_user):
    await _two_cohorts(db_session)
    as_user("mentor-1")

    response = await client.get("/learning/my-team")

    body = response.json()
    assert [row["name"] for row in body["teams"]] == ["Blue Team"]
    assert body["team"]["name"] == "Blue Team"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_team_without_team(client, as_user):
    as_user("loner")

    response = await client.get("/learning/my-team")

    assert response.json()["empty_notice"] == "You are not currently assigned to any team."


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_report_requires_cohort(client, as_user):
    as_user("admin-1", role="admin")

    response = await client.get("/learning/reports/participants")

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_teacher_cannot_view_report(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user(data["outsider"].user_id)

    response = await client.get(
        "/learning/reports/participants", params={"hl_cohort_id": str(data["cohort_a"].id)}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mentor_report_is_limited_to_team(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("mentor-1")

    response = await client.get(
        "/learning/reports/participants", params={"hl_cohort_id": str(data["cohort_a"].id)}
    )

    assert response.status_code == 200
    rows = response.json()["rows"]
    assert [row["display_name"] for row in rows] == ["Mina Mentor", "Tara Teammate"]
    assert rows[0]["team_name"] == "Blue Team"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_participant_report_csv(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("admin-1", role="admin")

    response = await client.get(
        "/learning/reports/participants",
        params={"hl_cohort_id": str(data["cohort_a"].id), "format": "csv"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0] == "Name,Email,Roles,School,Team,Completion %"
    assert len(lines) == 4


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cohort_summary(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("admin-1", role="admin")

    response = await client.get(
        "/learning/reports/cohort-summary", params={"hl_cohort_id": str(data["cohort_a"].id)}
    )

    body = response.json()
    assert body["total_enrollments"] == 3
    assert {team["team_name"] for team in body["teams"]} == {"Blue Team", "Red Team"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mentor_cohort_summary_lists_only_own_team(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    as_user("mentor-1")

    response = await client.get(
        "/learning/reports/cohort-summary", params={"hl_cohort_id": str(data["cohort_a"].id)}
    )

    assert response.status_code == 200
    assert [team["team_name"] for team in response.json()["teams"]] == ["Blue Team"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_district_leader_report_stays_in_own_district(client, db_session, as_user):
    cohort = CohortFactory.create(name="Shared Cohort")
    north = OrgUnitFactory.district(name="North District")
    south = OrgUnitFactory.district(name="South District")
    maple = OrgUnitFactory.create(name="Maple School", parent_orgunit_id=north.id)
    cedar = OrgUnitFactory.create(name="Cedar School", parent_orgunit_id=south.id)
    await persist(db_session, cohort, north, south, maple, cedar)
    await persist(
        db_session,
        EnrollmentFactory.create(
            cohort_id=cohort.id,
            user_id="leader-north",
            display_name="Nora Leader",
            roles=["district_leader"],
            district_id=north.id,
        ),
        EnrollmentFactory.create(
            cohort_id=cohort.id, display_name="Mark Maple", school_id=maple.id
        ),
        EnrollmentFactory.create(
            cohort_id=cohort.id, display_name="Cara Cedar", school_id=cedar.id
        ),
    )
    as_user("leader-north")

    response = await client.get(
        "/learning/reports/participants", params={"hl_cohort_id": str(cohort.id)}
    )

    assert response.status_code == 200
    names = {row["display_name"] for row in response.json()["rows"]}
    assert "Mark Maple" in names
    assert "Cara Cedar" not in names


# ---------------------------------------------------------------------------
# Coaching hub
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_coaching_hub_status_filter(client, db_session, as_user):
    data = await _two_cohorts(db_session)
    await persist(
        db_session,
        CoachingSessionFactory.create(
            cohort_id=data["cohort_a"].id, mentor_enrollment_id=data["mentor"].id
        ),
        CoachingSessionFactory.create(
            cohort_id=data["cohort_a"].id,
            mentor_enrollment_id=data["mentor"].id,
            session_status=SessionStatus.CANCELLED,
        ),
    )
    as_user("admin-1", role="admin")

    scheduled = await client.get("/learning/coaching-hub", params={"status": "scheduled"})
    bogus = await client.get("/learning/coaching-hub", params={"status": "bogus"})

    assert scheduled.status_code == 200
    assert scheduled.json()["total"] == 1
    assert bogus.status_code == 422
