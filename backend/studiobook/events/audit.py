"""Audit events emitted after booking-store writes commit."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..core.timezone_utils import studio_now
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger("studiobook.audit")


@dataclass
class AuditEvent:
    """A committed change to an entity."""

    actor: Optional[str]
    entity_type: str  # 'booking', 'reschedule_history', 'system_settings', ...
    entity_id: str
    action: str  # 'create', 'update', 'delete', ...
    metadata: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=studio_now)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


AuditHook = Callable[[AuditEvent], None]


class AuditHooks:
    """
    Registry of audit hooks owned by one repository.

    Dispatch happens after commit. A hook that raises is logged and skipped;
    it never affects the write that produced the event or the other hooks.
    """

    def __init__(self, hooks: Optional[Sequence[AuditHook]] = None):
        self._hooks: List[AuditHook] = list(hooks or [])

    def register(self, hook: AuditHook) -> None:
        self._hooks.append(hook)

    def unregister(self, hook: AuditHook) -> None:
        self._hooks = [existing for existing in self._hooks if existing is not hook]

    def hooks(self) -> Sequence[AuditHook]:
        return tuple(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def dispatch(self, event: AuditEvent) -> None:
        logger.info(
            "audit entity=%s id=%s action=%s actor=%s",
            event.entity_type,
            event.entity_id,
            event.action,
            event.actor or "system",
        )
        for hook in list(self._hooks):
            try:
                hook(event)
            except Exception:
                logger.exception("Audit hook %r failed for %s/%s", hook, event.entity_type, event.entity_id)
                prometheus_metrics.record_audit_event(event.entity_type, event.action, "error")
            else:
                prometheus_metrics.record_audit_event(event.entity_type, event.action, "ok")
