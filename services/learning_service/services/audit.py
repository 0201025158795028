"""Audit trail helpers.

Writes are added to the caller's session and committed with the change
they describe.
"""

import uuid
from typing import Any, Optional

from libs.common.logging import get_logger
from services.learning_service.models import AuditLog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _jsonable(data: Optional[dict]) -> Optional[dict]:
    if data is None:
        return None
    out = {}
    for key, value in data.items():
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        out[key] = value
    return out


def apply_changes(entity: Any, changes: dict) -> tuple[dict, dict]:
    """Set ``changes`` on ``entity``; return before/after of the fields that moved."""
    before, after = {}, {}
    for field, value in changes.items():
        current = getattr(entity, field)
        if current == value:
            continue
        before[field] = current
        after[field] = value
        setattr(entity, field, value)
    return before, after


def log(
    db: AsyncSession,
    action_type: str,
    *,
    actor_user_id: Optional[str] = None,
    cohort_id: Optional[uuid.UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    before_data: Optional[dict] = None,
    after_data: Optional[dict] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=actor_user_id,
        cohort_id=cohort_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        before_data=_jsonable(before_data),
        after_data=_jsonable(after_data),
        reason=reason,
        ip_address=ip_address,
    )
    db.add(entry)
    logger.info(
        "Audit %s on %s %s by %s", action_type, entity_type, entity_id, actor_user_id
    )
    return entry


async def get_logs(
    db: AsyncSession,
    *,
    cohort_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditLog]:
    query = select(AuditLog)
    if cohort_id:
        query = query.where(AuditLog.cohort_id == cohort_id)
    if action_type:
        query = query.where(AuditLog.action_type == action_type)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if actor_user_id:
        query = query.where(AuditLog.actor_user_id == actor_user_id)

    query = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())
