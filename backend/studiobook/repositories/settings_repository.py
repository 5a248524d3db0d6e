# backend/studiobook/repositories/settings_repository.py
"""
System settings repository.

Settings are a key/value table overlaid on built-in defaults. Every update
writes one audit row per key, with the old and new value, in the same
transaction as the change.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import insert, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..core.timezone_utils import studio_now
from ..database.pool import ConnectionPool
from ..events.audit import AuditEvent, AuditHook, AuditHooks
from ..models.system_setting import (
    DEFAULT_SYSTEM_SETTINGS,
    JSON_SETTING_KEYS,
    SystemSetting,
    SystemSettingAudit,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_settings = SystemSetting.__table__
_settings_audit = SystemSettingAudit.__table__


class SettingsRepository(BaseRepository[SystemSetting]):
    """Repository for business settings with a per-instance read cache."""

    def __init__(self, pool: ConnectionPool, audit_hooks: Optional[Sequence[AuditHook]] = None):
        super().__init__(pool, SystemSetting)
        self.audit_hooks = AuditHooks(audit_hooks)
        self._cache: Optional[Dict[str, Any]] = None

    def invalidate_cache(self) -> None:
        self._cache = None

    def get_system_settings(self) -> Dict[str, Any]:
        """
        All settings: defaults overlaid with stored values.

        JSON-valued keys are decoded; malformed JSON reads back as ``{}``.
        The result is cached until the next write through this repository.
        """
        if self._cache is not None:
            return dict(self._cache)

        with self.read_session() as session:
            rows = session.execute(
                select(_settings.c.key, _settings.c.value).order_by(_settings.c.key)
            ).all()

        merged: Dict[str, Any] = dict(DEFAULT_SYSTEM_SETTINGS)
        for key, value in rows:
            if key in JSON_SETTING_KEYS:
                try:
                    merged[key] = json.loads(value) if value else {}
                except ValueError:
                    logger.warning("Setting %s holds invalid JSON; using empty object", key)
                    merged[key] = {}
            else:
                merged[key] = value
        self._cache = merged
        return dict(merged)

    def get_system_setting(self, key: str) -> Optional[str]:
        """A single setting as text; JSON-valued settings are re-encoded."""
        value = self.get_system_settings().get(key)
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    def update_system_settings(
        self, values: Mapping[str, Any], updated_by: str = "system"
    ) -> None:
        """Upsert every key and audit each change, all in one transaction."""
        if not values:
            return
        self.invalidate_cache()
        now = studio_now()
        changes: List[Dict[str, Any]] = []
        with self.write_transaction("update_system_settings") as session:
            for key, raw_value in values.items():
                new_value = self._encode(key, raw_value)
                old_value = session.scalar(
                    select(_settings.c.value).where(_settings.c.key == key)
                )
                upsert = sqlite_insert(_settings).values(key=key, value=new_value, updated_at=now)
                session.execute(
                    upsert.on_conflict_do_update(
                        index_elements=[_settings.c.key],
                        set_={"value": new_value, "updated_at": now},
                    )
                )
                session.execute(
                    insert(_settings_audit).values(
                        key=key,
                        old_value=old_value,
                        new_value=new_value,
                        updated_by=updated_by,
                        updated_at=now,
                    )
                )
                changes.append({"key": key, "old_value": old_value, "new_value": new_value})
                logger.info(
                    "Setting updated: %s",
                    key,
                    extra={"old_value": old_value or "(none)", "updated_by": updated_by},
                )
        self.invalidate_cache()
        for change in changes:
            self.audit_hooks.dispatch(
                AuditEvent(
                    actor=updated_by,
                    entity_type="system_settings",
                    entity_id=change["key"],
                    action="update",
                    metadata=change,
                )
            )

    def initialize_system_settings(self) -> int:
        """Insert any missing default settings. Returns how many were added."""
        self.invalidate_cache()
        with self.write_transaction("initialize_system_settings") as session:
            existing = set(session.scalars(select(_settings.c.key)).all())
            missing = [
                {"key": key, "value": value}
                for key, value in DEFAULT_SYSTEM_SETTINGS.items()
                if key not in existing
            ]
            if missing:
                session.execute(insert(_settings), missing)
        return len(missing)

    def get_settings_audit(self, key: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        stmt = select(_settings_audit)
        if key:
            stmt = stmt.where(_settings_audit.c.key == key)
        stmt = stmt.order_by(_settings_audit.c.id.desc()).limit(limit)
        with self.read_session() as session:
            return [
                {
                    "id": row.id,
                    "key": row.key,
                    "old_value": row.old_value,
                    "new_value": row.new_value,
                    "updated_by": row.updated_by,
                    "updated_at": row.updated_at,
                }
                for row in session.execute(stmt)
            ]

    @staticmethod
    def _encode(key: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        if key in JSON_SETTING_KEYS and not isinstance(value, str):
            return json.dumps(value)
        return str(value)
