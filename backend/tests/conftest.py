# backend/tests/conftest.py
"""
Pytest configuration for the studio booking store.

Every test gets its own SQLite file under ``tmp_path`` (WAL needs a real
file) and an explicitly constructed connection pool. Nothing touches the
database configured in the environment.
"""

import os
import sys

# Set testing mode BEFORE any studiobook imports
os.environ.setdefault("CI", "true")
os.environ["STUDIO_TIMEZONE"] = "Asia/Jakarta"

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from typing import Any, Iterator, List

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine

from studiobook.core.config import PoolConfig
from studiobook.database.pool import ConnectionPool
from studiobook.database.schema import init_schema
from studiobook.repositories.factory import RepositoryFactory
from studiobook.services.booking_service import BookingService


class StatementRecorder:
    """Collects every SQL statement the engine sends to the driver."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.statements: List[str] = []

    def _record(self, _conn: Any, _cursor: Any, statement: str, *_args: Any) -> None:
        self.statements.append(statement)

    def __enter__(self) -> "StatementRecorder":
        event.listen(self.engine, "before_cursor_execute", self._record)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        event.remove(self.engine, "before_cursor_execute", self._record)

    @property
    def selects(self) -> List[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith("SELECT")]

    def clear(self) -> None:
        self.statements.clear()


@pytest.fixture
def pool_config() -> PoolConfig:
    return PoolConfig(max_connections=3, timeout=2.0, busy_timeout_ms=2000, poll_interval=0.01)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "bookings.db"


@pytest.fixture
def pool(db_path, pool_config) -> Iterator[ConnectionPool]:
    pool = ConnectionPool(db_path, pool_config)
    init_schema(pool)
    yield pool
    pool.close()


@pytest.fixture
def sql_recorder_for():
    def _recorder(target: ConnectionPool) -> StatementRecorder:
        return StatementRecorder(target.engine)

    return _recorder


@pytest.fixture
def sql_recorder(pool, sql_recorder_for):
    return lambda: sql_recorder_for(pool)


@pytest.fixture
def booking_repository(pool):
    return RepositoryFactory.create_booking_repository(pool)


@pytest.fixture
def catalog_repository(pool):
    return RepositoryFactory.create_catalog_repository(pool)


@pytest.fixture
def coupon_repository(pool):
    return RepositoryFactory.create_coupon_repository(pool)


@pytest.fixture
def settings_repository(pool):
    return RepositoryFactory.create_settings_repository(pool)


@pytest.fixture
def audit_repository(pool):
    return RepositoryFactory.create_audit_repository(pool)


@pytest.fixture
def lead_repository(pool):
    return RepositoryFactory.create_lead_repository(pool)


@pytest.fixture
def expense_repository(pool):
    return RepositoryFactory.create_expense_repository(pool)


@pytest.fixture
def booking_service(booking_repository, catalog_repository, coupon_repository):
    return BookingService(booking_repository, catalog_repository, coupon_repository)


@pytest.fixture
def studio_catalog(catalog_repository):
    """A wedding service, two wedding-compatible add-ons, one that is not, and a photographer."""
    wedding = catalog_repository.create_service(
        name="Wedding Package",
        category="Wedding",
        base_price=1_000_000,
        discount_value=100_000,
    )
    prewedding = catalog_repository.create_service(
        name="Prewedding Outdoor",
        category="Prewedding",
        base_price=750_000,
    )
    retired = catalog_repository.create_service(
        name="Retired Package",
        category="Wedding",
        base_price=500_000,
        is_active=False,
    )
    extra_hour = catalog_repository.create_addon(
        name="Extra Hour", price=250_000, applicable_categories=["Wedding"]
    )
    album = catalog_repository.create_addon(name="Printed Album", price=150_000)
    drone = catalog_repository.create_addon(
        name="Drone Shots", price=300_000, applicable_categories=["Prewedding"]
    )
    photographer = catalog_repository.create_photographer(name="Dimas", phone="0811111111")
    return {
        "wedding": wedding,
        "prewedding": prewedding,
        "retired": retired,
        "extra_hour": extra_hour,
        "album": album,
        "drone": drone,
        "photographer": photographer,
    }
