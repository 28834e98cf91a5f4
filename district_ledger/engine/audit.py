"""Append-only audit trail of engine actions, written in the caller's unit of work."""
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from sqlmodel import Session, SQLModel, col, select

from district_ledger.models.transaction import AuditLog


def _default(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def snapshot(obj: Optional[SQLModel]) -> Optional[dict]:
    """Plain-dict copy of a model, taken before it is mutated."""
    if obj is None:
        return None
    return {name: getattr(obj, name) for name in type(obj).model_fields}


def record(
    session: Session,
    action: str,
    entity: str,
    entity_id: Any,
    user: Optional[str] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> AuditLog:
    log = AuditLog(
        user=user,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        before=json.dumps(before, default=_default) if before is not None else None,
        after=json.dumps(after, default=_default) if after is not None else None,
    )
    session.add(log)
    return log


def list_logs(
    session: Session,
    entity: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 200,
) -> list[AuditLog]:
    stmt = select(AuditLog)
    if entity:
        stmt = stmt.where(AuditLog.entity == entity)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    stmt = stmt.order_by(col(AuditLog.id).desc()).limit(limit)
    return list(session.exec(stmt).all())
