"""Unit tests for the pure helpers behind the participant pages."""

import uuid
from datetime import date, datetime, timezone

import pytest
from libs.common.pagination import build_page, page_count, paginate_list, resolve_page
from services.learning_service.models import (
    ActivityType,
    AvailabilityStatus,
    CohortStatus,
    LockedReason,
    PrereqType,
)
from services.learning_service.schemas.availability import AvailabilityResult
from services.learning_service.services import reporting, views
from tests.factories import ActivityFactory, CohortFactory, PathwayFactory

TODAY = date(2025, 3, 10)


def _locked_prereq(blockers, prereq_type=PrereqType.ALL_OF, n_required=None):
    return AvailabilityResult(
        availability_status=AvailabilityStatus.LOCKED,
        locked_reason=LockedReason.PREREQ,
        blockers=blockers,
        prereq_type=prereq_type,
        n_required=n_required,
    )


# ---------------------------------------------------------------------------
# parse_id
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_parse_id_accepts_uuid_strings():
    value = uuid.uuid4()
    assert views.parse_id(str(value)) == value


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "", "abc", "12", "not-a-uuid"])
def test_parse_id_treats_garbage_as_missing(raw):
    assert views.parse_id(raw) is None


# ---------------------------------------------------------------------------
# Lock reasons
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_lock_reason_lists_blocker_titles():
    a, b = uuid.uuid4(), uuid.uuid4()
    text = views.lock_reason_text(_locked_prereq([a, b]), {a: "Intro", b: "Module 2"})
    assert text == "Complete prerequisites: Intro, Module 2"


@pytest.mark.unit
def test_lock_reason_truncates_long_blocker_lists():
    ids = [uuid.uuid4() for _ in range(5)]
    names = {aid: f"A{i}" for i, aid in enumerate(ids)}

    text = views.lock_reason_text(_locked_prereq(ids), names)

    assert text == "Complete prerequisites: A0, A1, A2 +2 more"


@pytest.mark.unit
def test_lock_reason_for_any_of_and_n_of_m():
    a = uuid.uuid4()
    names = {a: "Intro"}

    any_of = views.lock_reason_text(_locked_prereq([a], PrereqType.ANY_OF), names)
    n_of_m = views.lock_reason_text(_locked_prereq([a], PrereqType.N_OF_M, 2), names)

    assert any_of == "Complete at least one of: Intro"
    assert n_of_m == "Complete 2 of: Intro"


@pytest.mark.unit
def test_lock_reason_for_drip_uses_release_date():
    result = AvailabilityResult(
        availability_status=AvailabilityStatus.LOCKED,
        locked_reason=LockedReason.DRIP,
        next_available_at=datetime(2025, 4, 2, 9, 0, tzinfo=timezone.utc),
    )

    assert views.lock_reason_text(result, {}) == "Available on Apr 2, 2025"
    assert views.lock_reason_text(result, {}, detailed=True) == (
        "This activity will be available on Apr 2, 2025."
    )


@pytest.mark.unit
def test_lock_reason_for_drip_without_date():
    result = AvailabilityResult(
        availability_status=AvailabilityStatus.LOCKED, locked_reason=LockedReason.DRIP
    )
    assert views.lock_reason_text(result, {}) == "Not yet available"


# ---------------------------------------------------------------------------
# Program status and card labels
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_program_status_precedence():
    pathway = PathwayFactory.create()
    cohort = CohortFactory.create(status=CohortStatus.PAUSED)

    assert views.program_status(pathway, cohort, 40, TODAY) == "Paused"
    assert views.program_status(pathway, cohort, 100, TODAY) == "Completed"

    pathway.expiration_date = date(2025, 1, 1)
    assert views.program_status(pathway, cohort, 100, TODAY) == "Expired"

    active = CohortFactory.create(status=CohortStatus.ACTIVE)
    pathway.expiration_date = None
    assert views.program_status(pathway, active, 10, TODAY) == "Active"


@pytest.mark.unit
def test_card_status_label():
    assert views.card_status_label(0) == "Not Started"
    assert views.card_status_label(55) == "In Progress"
    assert views.card_status_label(100) == "Completed"


@pytest.mark.unit
def test_type_label_falls_back_to_title_case():
    assert views.type_label(ActivityType.LEARNDASH_COURSE) == "Course"
    assert views.type_label("reflective_journal") == "Reflective Journal"


# ---------------------------------------------------------------------------
# Activity actions
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_locked_activity_has_no_action():
    activity = ActivityFactory.create()
    locked = _locked_prereq([uuid.uuid4()])

    assert views.activity_action(activity, locked, uuid.uuid4(), None) is None


@pytest.mark.unit
def test_completed_activity_has_no_action():
    activity = ActivityFactory.create()
    done = AvailabilityResult.completed()

    assert views.activity_action(activity, done, uuid.uuid4(), None) is None


@pytest.mark.unit
def test_available_form_activity_links_to_activity_page():
    activity = ActivityFactory.create()
    enrollment_id = uuid.uuid4()

    action = views.activity_action(activity, AvailabilityResult.available(), enrollment_id, None)

    assert action.label == "Start"
    assert action.url == f"/learning/activity?id={activity.id}&enrollment={enrollment_id}"


@pytest.mark.unit
def test_available_course_needs_a_course_url():
    activity = ActivityFactory.create(activity_type=ActivityType.LEARNDASH_COURSE)
    available = AvailabilityResult.available()

    assert views.activity_action(activity, available, uuid.uuid4(), None) is None
    action = views.activity_action(activity, available, uuid.uuid4(), "https://c.test/1")
    assert action.label == "Start Course"
    assert action.url == "https://c.test/1"


@pytest.mark.unit
def test_coaching_activity_is_managed_by_coach():
    activity = ActivityFactory.create(activity_type=ActivityType.COACHING_SESSION_ATTENDANCE)

    action = views.activity_action(activity, AvailabilityResult.available(), uuid.uuid4(), None)

    assert action.url is None
    assert action.message == views.MANAGED_BY_COACH


# ---------------------------------------------------------------------------
# Percent arithmetic
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_overall_percent_is_weight_normalised():
    assert reporting.overall_percent([(1, 100), (1, 0)]) == 50
    assert reporting.overall_percent([(3, 100), (1, 0)]) == 75


@pytest.mark.unit
def test_overall_percent_ignores_non_positive_weights():
    assert reporting.overall_percent([(0, 100), (-2, 100), (1, 20)]) == 20
    assert reporting.overall_percent([(0, 100)]) == 0
    assert reporting.overall_percent([]) == 0


@pytest.mark.unit
def test_rollup_percent_treats_non_positive_weights_as_one():
    assert reporting.rollup_percent([(0, 100), (1, 0)]) == 50.0
    assert reporting.rollup_percent([(2, 100), (1, 50)]) == 83.33
    assert reporting.rollup_percent([]) == 0.0


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [(None, 1), ("", 1), ("x", 1), ("0", 1), ("-4", 1), ("3", 3)])
def test_resolve_page(raw, expected):
    assert resolve_page(raw) == expected


@pytest.mark.unit
def test_page_count_rounds_up_and_is_zero_when_empty():
    assert page_count(0, 25) == 0
    assert page_count(1, 25) == 1
    assert page_count(25, 25) == 1
    assert page_count(26, 25) == 2


@pytest.mark.unit
def test_paginate_list_slices_requested_page():
    items = list(range(30))

    second = paginate_list(items, "2")

    assert second["items"] == list(range(25, 30))
    assert second["total"] == 30
    assert second["total_pages"] == 2
    assert paginate_list(items, "9")["items"] == []


@pytest.mark.unit
def test_build_page_shape():
    page = build_page([], total=0, page=1)
    assert page == {"items": [], "total": 0, "page": 1, "page_size": 25, "total_pages": 0}
