"""Admin audit logging.

:func:`log_action` never commits. Callers invoke it inside the unit of work
that performs the mutation it documents, so the entry and the mutation land
together or not at all.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lendtrack.models import AdminAction, AdminAuditLog, AuditEntityType

logger = logging.getLogger(__name__)


def _serialize_value(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _to_json(data: dict[str, object] | None) -> str | None:
    if not data:
        return None
    return json.dumps(
        data, ensure_ascii=True, sort_keys=True, default=_serialize_value
    )


def _from_json(raw: str | None) -> dict[str, object]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def build_field_changes(
    before: dict[str, object],
    after: dict[str, object],
) -> dict[str, dict[str, object]]:
    """Build old/new map for modified fields only."""
    changes: dict[str, dict[str, object]] = {}
    for field in sorted(set(before.keys()) | set(after.keys())):
        left = _serialize_value(before.get(field))
        right = _serialize_value(after.get(field))
        if left != right:
            changes[field] = {"old": left, "new": right}
    return changes


async def log_action(
    db: AsyncSession,
    *,
    admin_user_id: uuid.UUID,
    action: AdminAction,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    details: dict[str, object] | None = None,
) -> AdminAuditLog:
    """Append an audit row inside the current transaction."""
    entry = AdminAuditLog(
        admin_user_id=admin_user_id,
        action=action.value,
        entity_type=entity_type.value,
        entity_id=entity_id,
        details=_to_json(details),
    )
    db.add(entry)
    await db.flush()
    logger.info(
        "Audit %s on %s %s by admin %s",
        action.value,
        entity_type.value,
        entity_id,
        admin_user_id,
    )
    return entry


async def list_audit_logs(
    db: AsyncSession,
    *,
    entity_type: AuditEntityType | None = None,
    entity_id: uuid.UUID | None = None,
    limit: int = 100,
) -> list[AdminAuditLog]:
    """List newest-to-oldest audit logs, optionally for one entity."""
    query = select(AdminAuditLog).options(selectinload(AdminAuditLog.admin))
    if entity_type is not None:
        query = query.where(AdminAuditLog.entity_type == entity_type.value)
    if entity_id is not None:
        query = query.where(AdminAuditLog.entity_id == entity_id)

    result = await db.execute(
        query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc()).limit(
            max(1, min(limit, 500))
        )
    )
    return list(result.scalars())


def serialize_audit_log(entry: AdminAuditLog) -> dict[str, object]:
    """Serialize one audit log row for the API/CLI."""
    return {
        "id": str(entry.id),
        "admin_user_id": str(entry.admin_user_id),
        "admin_email": entry.admin.email if entry.admin else None,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": str(entry.entity_id),
        "details": _from_json(entry.details),
        "created_at": entry.created_at.isoformat(),
    }
