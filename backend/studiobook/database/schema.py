"""
Idempotent schema creation and in-place migration.

``init_schema`` is safe to run on every start: tables and indexes are
created only when missing, columns added in later releases are appended to
older databases, and default settings are seeded into an empty table.
"""

import logging
from typing import Dict, List, Tuple

from sqlalchemy import func, inspect, select, text
from sqlalchemy.engine import Connection

from .. import models  # noqa: F401  registers every table on Base.metadata
from ..models.system_setting import DEFAULT_SYSTEM_SETTINGS, SystemSetting
from .base import Base
from .pool import ConnectionPool

logger = logging.getLogger(__name__)

# Columns introduced after the first release, as (column, DDL) per table
LEGACY_COLUMNS: Dict[str, List[Tuple[str, str]]] = {
    "bookings": [
        ("customer_service_id", "customer_service_id TEXT"),
        ("service_base_price", "service_base_price INTEGER"),
        ("base_discount", "base_discount INTEGER"),
        ("addons_total", "addons_total INTEGER"),
        ("coupon_discount", "coupon_discount INTEGER"),
        ("coupon_code", "coupon_code TEXT"),
        ("photographer_id", "photographer_id TEXT REFERENCES photographers(id)"),
        ("updated_at", "updated_at TEXT"),
    ],
    "payments": [
        ("proof_url", "proof_url TEXT"),
        ("storage_backend", "storage_backend TEXT DEFAULT 'local'"),
    ],
    "users": [
        ("permissions", "permissions TEXT"),
    ],
    "services": [
        ("badge_text", "badge_text TEXT"),
    ],
}


def add_column_if_missing(conn: Connection, table: str, column: str, ddl: str) -> bool:
    """Add a column to *table* if it does not exist. Returns True when added."""
    inspector = inspect(conn)
    if table not in inspector.get_table_names():
        return False
    column_names = [col["name"] for col in inspector.get_columns(table)]
    if column in column_names:
        return False
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {ddl}"))
    logger.info("Database migration: added %s.%s", table, column)
    return True


def seed_system_settings(conn: Connection) -> int:
    """Insert the default settings when the table is empty."""
    existing = conn.execute(select(func.count()).select_from(SystemSetting.__table__)).scalar_one()
    if existing:
        return 0
    conn.execute(
        SystemSetting.__table__.insert(),
        [{"key": key, "value": value} for key, value in DEFAULT_SYSTEM_SETTINGS.items()],
    )
    return len(DEFAULT_SYSTEM_SETTINGS)


def init_schema(pool: ConnectionPool) -> None:
    """Create tables and indexes, migrate legacy columns and seed defaults."""
    with pool.connection() as conn:
        with conn.begin():
            Base.metadata.create_all(conn, checkfirst=True)
        with conn.begin():
            for table, columns in LEGACY_COLUMNS.items():
                for column, ddl in columns:
                    add_column_if_missing(conn, table, column, ddl)
        with conn.begin():
            seeded = seed_system_settings(conn)
    if seeded:
        logger.info("Seeded %d default system settings", seeded)
    logger.info("Database schema ready at %s", pool.database_path)


def drop_schema(pool: ConnectionPool) -> None:
    with pool.connection() as conn:
        with conn.begin():
            Base.metadata.drop_all(conn)
