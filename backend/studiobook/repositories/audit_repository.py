# backend/studiobook/repositories/audit_repository.py
"""
Repository helpers for audit_log persistence and querying.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, func, select

from ..core.config import settings
from ..database.pool import ConnectionPool
from ..events.audit import AuditEvent, AuditHook
from ..models.audit_log import AuditLog
from .base_repository import BaseRepository


class AuditRepository(BaseRepository[AuditLog]):
    """Persist and query audit trail entries."""

    def __init__(self, pool: ConnectionPool):
        super().__init__(pool, AuditLog)

    def write(self, event: AuditEvent, timeout: Optional[float] = None) -> str:
        """Persist an audit row in its own short transaction. Returns the row id."""
        with self.write_transaction("write_audit_log", timeout=timeout) as session:
            row = AuditLog.from_event(
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                action=event.action,
                actor=event.actor,
                metadata=event.metadata,
            )
            row.occurred_at = event.occurred_at
            session.add(row)
            session.flush()
            return str(row.id)

    def as_hook(self, timeout: Optional[float] = None) -> AuditHook:
        """
        Audit hook that writes every event to ``audit_log``.

        The hook runs after the booking write has committed, so it waits at
        most ``timeout`` seconds (``settings.audit_hook_timeout_seconds`` by
        default) for a pooled connection instead of the full acquire timeout.
        """
        wait = settings.audit_hook_timeout_seconds if timeout is None else timeout

        def _persist(event: AuditEvent) -> None:
            self.write(event, timeout=wait)

        return _persist

    def list(
        self,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        actor: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AuditLog], int]:
        """Return audit rows matching supplied filters ordered descending by timestamp."""
        limit = max(0, limit)
        offset = max(0, offset)

        conditions = _build_filters(entity_type, entity_id, action, actor)
        if start is not None:
            conditions.append(AuditLog.occurred_at >= start)
        if end is not None:
            conditions.append(AuditLog.occurred_at <= end)

        stmt = select(AuditLog).order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc())
        count_stmt = select(func.count()).select_from(AuditLog)

        if conditions:
            stmt = stmt.where(and_(*conditions))
            count_stmt = count_stmt.where(and_(*conditions))

        stmt = stmt.offset(offset).limit(limit)

        with self.read_session() as session:
            rows = list(session.execute(stmt).scalars().all())
            total = session.execute(count_stmt).scalar_one()

        return rows, int(total)


def _build_filters(
    entity_type: Optional[str],
    entity_id: Optional[str],
    action: Optional[str],
    actor: Optional[str],
) -> list[Any]:
    clauses: list[Any] = []
    if entity_type:
        clauses.append(AuditLog.entity_type == entity_type)
    if entity_id:
        clauses.append(AuditLog.entity_id == entity_id)
    if action:
        clauses.append(AuditLog.action == action)
    if actor:
        clauses.append(AuditLog.actor == actor)
    return clauses
