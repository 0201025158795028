"""Activity availability rules.

An activity is gated for an enrollment by, in order:

1. its own completion state (complete -> ``completed``),
2. the newest override (``exempt`` completes it, ``manual_unlock`` skips drip
   rules, ``grace_unlock`` skips prerequisites),
3. prerequisite groups (ANDed together; each group is ``all_of``, ``any_of``
   or ``n_of_m`` over its items),
4. drip rules (a fixed release date, or a delay after another activity is
   completed).

The evaluation itself is pure (``evaluate_availability``); the async helpers
load everything an enrollment needs in a handful of queries.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.learning_service.models import (
    Activity,
    ActivityDripRule,
    ActivityOverride,
    ActivityPrereqGroup,
    ActivityPrereqItem,
    ActivityState,
    AvailabilityStatus,
    CompletionStatus,
    DripType,
    LockedReason,
    OverrideType,
    PrereqType,
)
from services.learning_service.schemas.availability import AvailabilityResult, CycleCheck
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrereqGroupRule:
    prereq_type: PrereqType
    n_required: Optional[int]
    item_ids: tuple[uuid.UUID, ...]


@dataclass(frozen=True)
class DripRuleDef:
    drip_type: DripType
    release_at_date: Optional[datetime] = None
    base_activity_id: Optional[uuid.UUID] = None
    delay_days: Optional[int] = None


@dataclass
class ActivityGates:
    groups: list[PrereqGroupRule] = field(default_factory=list)
    drip_rules: list[DripRuleDef] = field(default_factory=list)
    override_type: Optional[OverrideType] = None


# ---------------------------------------------------------------------------
# Pure evaluation
# ---------------------------------------------------------------------------


def check_prerequisites(
    groups: Sequence[PrereqGroupRule], completed: Iterable[uuid.UUID]
) -> Optional[AvailabilityResult]:
    """Return a ``locked/prereq`` result for the first unsatisfied group, else None."""
    completed = set(completed)
    for group in groups:
        if not group.item_ids:
            continue

        total = len(group.item_ids)
        blockers = [aid for aid in group.item_ids if aid not in completed]
        done = total - len(blockers)
        n_required = group.n_required if group.n_required is not None else total

        if group.prereq_type == PrereqType.ANY_OF:
            satisfied = done >= 1
        elif group.prereq_type == PrereqType.N_OF_M:
            satisfied = done >= n_required
        else:
            satisfied = done == total

        if not satisfied:
            return AvailabilityResult(
                availability_status=AvailabilityStatus.LOCKED,
                locked_reason=LockedReason.PREREQ,
                blockers=blockers,
                prereq_type=group.prereq_type,
                n_required=n_required,
            )
    return None


def check_drip_rules(
    rules: Sequence[DripRuleDef],
    completed_at: dict[uuid.UUID, Optional[datetime]],
    now: datetime,
) -> Optional[AvailabilityResult]:
    """Return a ``locked/drip`` result while any rule is pending, else None.

    ``completed_at`` maps completed activity ids to their completion time.
    """
    latest: Optional[datetime] = None

    for rule in rules:
        if rule.drip_type == DripType.FIXED_DATE and rule.release_at_date:
            release = ensure_utc(rule.release_at_date)
            if now < release:
                latest = release if latest is None else max(latest, release)

        elif rule.drip_type == DripType.AFTER_COMPLETION_DELAY and rule.base_activity_id:
            base_done = ensure_utc(completed_at.get(rule.base_activity_id))
            if base_done is None:
                # Release date is unknown until the base activity is finished.
                return AvailabilityResult(
                    availability_status=AvailabilityStatus.LOCKED,
                    locked_reason=LockedReason.DRIP,
                )
            available_at = base_done + timedelta(days=rule.delay_days or 0)
            if now < available_at:
                latest = available_at if latest is None else max(latest, available_at)

    if latest is not None:
        return AvailabilityResult(
            availability_status=AvailabilityStatus.LOCKED,
            locked_reason=LockedReason.DRIP,
            next_available_at=latest,
        )
    return None


def evaluate_availability(
    activity_id: uuid.UUID,
    gates: ActivityGates,
    completed_at: dict[uuid.UUID, Optional[datetime]],
    now: Optional[datetime] = None,
) -> AvailabilityResult:
    now = ensure_utc(now) if now else utc_now()

    if activity_id in completed_at:
        return AvailabilityResult.completed()

    override = gates.override_type
    if override == OverrideType.EXEMPT:
        return AvailabilityResult.completed()

    if override != OverrideType.GRACE_UNLOCK:
        locked = check_prerequisites(gates.groups, completed_at.keys())
        if locked:
            return locked

    if override != OverrideType.MANUAL_UNLOCK:
        locked = check_drip_rules(gates.drip_rules, completed_at, now)
        if locked:
            return locked

    return AvailabilityResult.available()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def load_completions(
    db: AsyncSession, enrollment_id: uuid.UUID
) -> dict[uuid.UUID, Optional[datetime]]:
    """Completed activity ids for an enrollment, mapped to their completion time."""
    result = await db.execute(
        select(ActivityState.activity_id, ActivityState.completed_at).where(
            ActivityState.enrollment_id == enrollment_id,
            ActivityState.completion_status == CompletionStatus.COMPLETE,
        )
    )
    return {row.activity_id: row.completed_at for row in result.all()}


async def load_gates(
    db: AsyncSession, enrollment_id: uuid.UUID, activity_ids: Sequence[uuid.UUID]
) -> dict[uuid.UUID, ActivityGates]:
    gates = {aid: ActivityGates() for aid in activity_ids}
    if not gates:
        return gates

    group_rows = await db.execute(
        select(ActivityPrereqGroup)
        .options(selectinload(ActivityPrereqGroup.items))
        .where(ActivityPrereqGroup.activity_id.in_(list(gates)))
        .order_by(ActivityPrereqGroup.created_at, ActivityPrereqGroup.id)
    )
    for group in group_rows.scalars().all():
        gates[group.activity_id].groups.append(
            PrereqGroupRule(
                prereq_type=group.prereq_type,
                n_required=group.n_required,
                item_ids=tuple(item.prerequisite_activity_id for item in group.items),
            )
        )

    drip_rows = await db.execute(
        select(ActivityDripRule).where(ActivityDripRule.activity_id.in_(list(gates)))
    )
    for rule in drip_rows.scalars().all():
        gates[rule.activity_id].drip_rules.append(
            DripRuleDef(
                drip_type=rule.drip_type,
                release_at_date=rule.release_at_date,
                base_activity_id=rule.base_activity_id,
                delay_days=rule.delay_days,
            )
        )

    # Oldest first so the newest override per activity wins.
    override_rows = await db.execute(
        select(ActivityOverride)
        .where(
            ActivityOverride.enrollment_id == enrollment_id,
            ActivityOverride.activity_id.in_(list(gates)),
        )
        .order_by(ActivityOverride.created_at, ActivityOverride.id)
    )
    for override in override_rows.scalars().all():
        gates[override.activity_id].override_type = override.override_type

    return gates


async def compute_pathway_availability(
    db: AsyncSession,
    enrollment_id: uuid.UUID,
    activity_ids: Sequence[uuid.UUID],
    now: Optional[datetime] = None,
) -> dict[uuid.UUID, AvailabilityResult]:
    """Availability for several activities of one enrollment."""
    completed_at = await load_completions(db, enrollment_id)
    gates = await load_gates(db, enrollment_id, activity_ids)
    return {
        aid: evaluate_availability(aid, gates[aid], completed_at, now)
        for aid in activity_ids
    }


async def compute_availability(
    db: AsyncSession,
    enrollment_id: uuid.UUID,
    activity_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> AvailabilityResult:
    results = await compute_pathway_availability(db, enrollment_id, [activity_id], now)
    return results[activity_id]


# ---------------------------------------------------------------------------
# Prerequisite cycle detection
# ---------------------------------------------------------------------------

_WHITE, _GRAY, _BLACK = 0, 1, 2


def find_cycle(adjacency: dict[uuid.UUID, list[uuid.UUID]]) -> Optional[list[uuid.UUID]]:
    """Iterative three-colour DFS over ``activity -> prerequisites`` edges.

    Returns the cycle as a path that starts and ends on the same node, or None.
    Edges pointing at nodes missing from ``adjacency`` are ignored.
    """
    color = {node: _WHITE for node in adjacency}

    for start in adjacency:
        if color[start] != _WHITE:
            continue

        stack = [start]
        position = {start: 0}
        color[start] = _GRAY

        while stack:
            node = stack[-1]
            neighbors = adjacency[node]

            if position[node] < len(neighbors):
                nxt = neighbors[position[node]]
                position[node] += 1

                if nxt not in color:
                    continue
                if color[nxt] == _GRAY:
                    cycle = [nxt]
                    for member in reversed(stack):
                        cycle.append(member)
                        if member == nxt:
                            break
                    cycle.reverse()
                    return cycle
                if color[nxt] == _WHITE:
                    color[nxt] = _GRAY
                    position[nxt] = 0
                    stack.append(nxt)
            else:
                color[node] = _BLACK
                stack.pop()

    return None


async def validate_no_cycles(
    db: AsyncSession,
    pathway_id: uuid.UUID,
    activity_id: uuid.UUID,
    proposed_prereq_ids: Sequence[uuid.UUID],
) -> CycleCheck:
    """Check that giving ``activity_id`` the proposed prerequisites keeps the pathway acyclic."""
    result = await db.execute(select(Activity.id).where(Activity.pathway_id == pathway_id))
    adjacency: dict[uuid.UUID, list[uuid.UUID]] = {aid: [] for aid in result.scalars().all()}

    if adjacency:
        edges = await db.execute(
            select(ActivityPrereqGroup.activity_id, ActivityPrereqItem.prerequisite_activity_id)
            .join(ActivityPrereqItem, ActivityPrereqItem.group_id == ActivityPrereqGroup.id)
            .where(ActivityPrereqGroup.activity_id.in_(list(adjacency)))
        )
        for source, target in edges.all():
            if source == activity_id:
                continue
            adjacency.setdefault(source, []).append(target)

    adjacency[activity_id] = list(proposed_prereq_ids)
    # Prerequisites from other pathways are leaves.
    for prereq_id in proposed_prereq_ids:
        adjacency.setdefault(prereq_id, [])

    cycle = find_cycle(adjacency)
    if cycle:
        logger.info("Rejected prerequisites for %s: cycle %s", activity_id, cycle)
    return CycleCheck(valid=cycle is None, cycle=cycle)
