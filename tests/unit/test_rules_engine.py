"""Unit tests for activity availability and prerequisite cycle detection."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from services.learning_service.models import (
    AvailabilityStatus,
    DripType,
    LockedReason,
    OverrideType,
    PrereqType,
)
from services.learning_service.services import rules_engine
from services.learning_service.services.rules_engine import (
    ActivityGates,
    DripRuleDef,
    PrereqGroupRule,
)
from tests.factories import (
    ActivityFactory,
    ActivityStateFactory,
    CohortFactory,
    EnrollmentFactory,
    PathwayFactory,
    PrereqGroupFactory,
    persist,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _ids(n):
    return [uuid.uuid4() for _ in range(n)]


# ---------------------------------------------------------------------------
# Prerequisites
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_all_of_locks_until_every_prerequisite_is_complete():
    target, a, b = _ids(3)
    gates = ActivityGates(groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a, b))])

    result = rules_engine.evaluate_availability(target, gates, {a: NOW}, NOW)

    assert result.availability_status == AvailabilityStatus.LOCKED
    assert result.locked_reason == LockedReason.PREREQ
    assert result.blockers == [b]
    assert result.prereq_type == PrereqType.ALL_OF

    result = rules_engine.evaluate_availability(target, gates, {a: NOW, b: NOW}, NOW)
    assert result.availability_status == AvailabilityStatus.AVAILABLE


@pytest.mark.unit
def test_any_of_needs_a_single_completion():
    target, a, b, c = _ids(4)
    gates = ActivityGates(groups=[PrereqGroupRule(PrereqType.ANY_OF, None, (a, b, c))])

    locked = rules_engine.evaluate_availability(target, gates, {}, NOW)
    assert locked.is_locked
    assert locked.blockers == [a, b, c]

    result = rules_engine.evaluate_availability(target, gates, {c: NOW}, NOW)
    assert result.availability_status == AvailabilityStatus.AVAILABLE


@pytest.mark.unit
def test_n_of_m_counts_completions():
    target, a, b, c = _ids(4)
    gates = ActivityGates(groups=[PrereqGroupRule(PrereqType.N_OF_M, 2, (a, b, c))])

    locked = rules_engine.evaluate_availability(target, gates, {a: NOW}, NOW)
    assert locked.is_locked
    assert locked.n_required == 2
    assert set(locked.blockers) == {b, c}

    result = rules_engine.evaluate_availability(target, gates, {a: NOW, c: NOW}, NOW)
    assert result.availability_status == AvailabilityStatus.AVAILABLE


@pytest.mark.unit
def test_groups_are_anded_and_first_failing_group_reports():
    target, a, b = _ids(3)
    gates = ActivityGates(
        groups=[
            PrereqGroupRule(PrereqType.ALL_OF, None, (a,)),
            PrereqGroupRule(PrereqType.ANY_OF, None, (b,)),
        ]
    )

    result = rules_engine.evaluate_availability(target, gates, {a: NOW}, NOW)

    assert result.is_locked
    assert result.prereq_type == PrereqType.ANY_OF
    assert result.blockers == [b]


@pytest.mark.unit
def test_empty_group_is_ignored():
    target = uuid.uuid4()
    gates = ActivityGates(groups=[PrereqGroupRule(PrereqType.ALL_OF, None, ())])

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.availability_status == AvailabilityStatus.AVAILABLE


# ---------------------------------------------------------------------------
# Drip rules
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_fixed_date_drip_locks_until_release():
    target = uuid.uuid4()
    release = NOW + timedelta(days=2)
    gates = ActivityGates(drip_rules=[DripRuleDef(DripType.FIXED_DATE, release_at_date=release)])

    locked = rules_engine.evaluate_availability(target, gates, {}, NOW)
    assert locked.locked_reason == LockedReason.DRIP
    assert locked.next_available_at == release

    result = rules_engine.evaluate_availability(target, gates, {}, release)
    assert result.availability_status == AvailabilityStatus.AVAILABLE


@pytest.mark.unit
def test_delay_drip_without_base_completion_has_no_release_date():
    target, base = _ids(2)
    gates = ActivityGates(
        drip_rules=[
            DripRuleDef(DripType.AFTER_COMPLETION_DELAY, base_activity_id=base, delay_days=7)
        ]
    )

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.locked_reason == LockedReason.DRIP
    assert result.next_available_at is None


@pytest.mark.unit
def test_delay_drip_counts_from_base_completion():
    target, base = _ids(2)
    gates = ActivityGates(
        drip_rules=[
            DripRuleDef(DripType.AFTER_COMPLETION_DELAY, base_activity_id=base, delay_days=7)
        ]
    )
    completed = {base: NOW - timedelta(days=3)}

    locked = rules_engine.evaluate_availability(target, gates, completed, NOW)
    assert locked.next_available_at == NOW + timedelta(days=4)

    later = NOW + timedelta(days=5)
    assert rules_engine.evaluate_availability(target, gates, completed, later).availability_status == (
        AvailabilityStatus.AVAILABLE
    )


@pytest.mark.unit
def test_latest_pending_drip_date_wins():
    target = uuid.uuid4()
    early = NOW + timedelta(days=1)
    late = NOW + timedelta(days=9)
    gates = ActivityGates(
        drip_rules=[
            DripRuleDef(DripType.FIXED_DATE, release_at_date=early),
            DripRuleDef(DripType.FIXED_DATE, release_at_date=late),
        ]
    )

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.next_available_at == late


@pytest.mark.unit
def test_prerequisites_are_checked_before_drip():
    target, a = _ids(2)
    gates = ActivityGates(
        groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a,))],
        drip_rules=[DripRuleDef(DripType.FIXED_DATE, release_at_date=NOW + timedelta(days=1))],
    )

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.locked_reason == LockedReason.PREREQ


# ---------------------------------------------------------------------------
# Completion and overrides
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_completed_activity_is_completed_even_when_gated():
    target, a = _ids(2)
    gates = ActivityGates(groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a,))])

    result = rules_engine.evaluate_availability(target, gates, {target: NOW}, NOW)

    assert result.availability_status == AvailabilityStatus.COMPLETED


@pytest.mark.unit
def test_exempt_override_completes_activity():
    target, a = _ids(2)
    gates = ActivityGates(
        groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a,))],
        override_type=OverrideType.EXEMPT,
    )

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.availability_status == AvailabilityStatus.COMPLETED


@pytest.mark.unit
def test_grace_unlock_skips_prerequisites_but_not_drip():
    target, a = _ids(2)
    release = NOW + timedelta(days=1)
    gates = ActivityGates(
        groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a,))],
        drip_rules=[DripRuleDef(DripType.FIXED_DATE, release_at_date=release)],
        override_type=OverrideType.GRACE_UNLOCK,
    )

    result = rules_engine.evaluate_availability(target, gates, {}, NOW)

    assert result.locked_reason == LockedReason.DRIP


@pytest.mark.unit
def test_manual_unlock_skips_drip_but_not_prerequisites():
    target, a = _ids(2)
    gates = ActivityGates(
        groups=[PrereqGroupRule(PrereqType.ALL_OF, None, (a,))],
        drip_rules=[DripRuleDef(DripType.FIXED_DATE, release_at_date=NOW + timedelta(days=1))],
        override_type=OverrideType.MANUAL_UNLOCK,
    )

    assert rules_engine.evaluate_availability(target, gates, {}, NOW).locked_reason == (
        LockedReason.PREREQ
    )
    result = rules_engine.evaluate_availability(target, gates, {a: NOW}, NOW)
    assert result.availability_status == AvailabilityStatus.AVAILABLE


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_find_cycle_returns_closed_path():
    a, b, c = _ids(3)

    cycle = rules_engine.find_cycle({a: [b], b: [c], c: [a]})

    assert cycle is not None
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {a, b, c}


@pytest.mark.unit
def test_find_cycle_accepts_a_dag():
    a, b, c, d = _ids(4)

    assert rules_engine.find_cycle({a: [b, c], b: [d], c: [d], d: []}) is None


@pytest.mark.unit
def test_find_cycle_ignores_unknown_targets():
    a, outside = _ids(2)

    assert rules_engine.find_cycle({a: [outside]}) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_validate_no_cycles_uses_stored_edges(db_session):
    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    first = ActivityFactory.create(pathway, title="First")
    second = ActivityFactory.create(pathway, title="Second")
    await persist(db_session, cohort, pathway, first, second)
    # second requires first
    await persist(db_session, PrereqGroupFactory.create(second.id, [first.id]))

    check = await rules_engine.validate_no_cycles(db_session, pathway.id, first.id, [second.id])
    assert check.valid is False
    assert set(check.cycle) == {first.id, second.id}

    check = await rules_engine.validate_no_cycles(db_session, pathway.id, second.id, [])
    assert check.valid is True
    assert check.cycle is None


# ---------------------------------------------------------------------------
# Loading from the database
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_compute_availability_reads_states_groups_and_overrides(db_session):
    from services.learning_service.models import ActivityOverride

    cohort = CohortFactory.create()
    pathway = PathwayFactory.create(cohort_id=cohort.id)
    enrollment = EnrollmentFactory.create(cohort_id=cohort.id)
    first = ActivityFactory.create(pathway, title="First")
    second = ActivityFactory.create(pathway, title="Second", ordering_hint=1)
    await persist(db_session, cohort, pathway, enrollment, first, second)
    await persist(db_session, PrereqGroupFactory.create(second.id, [first.id]))

    result = await rules_engine.compute_availability(db_session, enrollment.id, second.id)
    assert result.is_locked
    assert result.blockers == [first.id]

    await persist(
        db_session,
        ActivityOverride(
            enrollment_id=enrollment.id,
            activity_id=second.id,
            override_type=OverrideType.GRACE_UNLOCK,
        ),
    )
    result = await rules_engine.compute_availability(db_session, enrollment.id, second.id)
    assert result.availability_status == AvailabilityStatus.AVAILABLE

    await persist(db_session, ActivityStateFactory.create(enrollment.id, second.id))
    result = await rules_engine.compute_availability(db_session, enrollment.id, second.id)
    assert result.availability_status == AvailabilityStatus.COMPLETED
