# backend/studiobook/models/audit_log.py
"""
Audit trail entries for booking-store writes.

Rows are written after the audited transaction commits, so an entry here
always describes a change that is durable.
"""

from typing import Any, Mapping, Optional

from sqlalchemy import Column, Index, Text

from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import JSONText, StudioTimestamp


class AuditLog(Base):
    """Persistence model for audit trail entries."""

    __tablename__ = "audit_log"

    id = Column(Text, primary_key=True, default=generate_ulid)
    entity_type = Column(Text, nullable=False)
    entity_id = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    actor = Column(Text, nullable=True)
    occurred_at = Column(StudioTimestamp, nullable=False, default=studio_now)
    details = Column(JSONText, nullable=True)

    __table_args__ = (
        Index("idx_audit_log_entity", "entity_type", "entity_id"),
        Index("idx_audit_log_occurred_at", "occurred_at"),
    )

    @classmethod
    def from_event(
        cls,
        entity_type: str,
        entity_id: str,
        action: str,
        actor: Optional[str],
        metadata: Optional[Mapping[str, Any]],
    ) -> "AuditLog":
        return cls(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            details=dict(metadata) if metadata else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
            "metadata": self.details or {},
        }
