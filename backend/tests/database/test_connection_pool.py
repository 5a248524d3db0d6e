"""Tests for the bounded SQLite connection pool."""

import threading
import time

import pytest
from sqlalchemy import text

from studiobook.core.config import PoolConfig
from studiobook.core.exceptions import ConnectionPoolTimeout, RepositoryException, is_pool_exhaustion
from studiobook.database.pool import ConnectionPool, PoolStats


@pytest.fixture
def bare_pool(db_path):
    pool = ConnectionPool(
        db_path, PoolConfig(max_connections=2, timeout=1.0, busy_timeout_ms=1000, poll_interval=0.01)
    )
    yield pool
    pool.close()


class TestLifecycle:
    def test_initialize_opens_every_connection_once(self, bare_pool):
        bare_pool.initialize()
        bare_pool.initialize()

        assert bare_pool.get_stats() == PoolStats(total=2, available=2, in_use=0, max=2)

    def test_context_manager_initializes_and_closes(self, db_path, pool_config):
        with ConnectionPool(db_path, pool_config) as pool:
            assert pool.get_stats().total == pool_config.max_connections
        assert pool.closed

    def test_close_is_idempotent_and_blocks_further_use(self, bare_pool):
        bare_pool.initialize()
        bare_pool.close()
        bare_pool.close()

        with pytest.raises(RepositoryException, match="Connection pool is closed") as exc_info:
            bare_pool.get_connection()
        assert exc_info.value.code == "POOL_CLOSED"
        assert bare_pool.get_stats().total == 0

    def test_units_of_work_on_closed_pool_raise_pool_closed(self, bare_pool):
        bare_pool.close()

        with pytest.raises(RepositoryException) as exc_info:
            with bare_pool.transaction():
                pass
        assert exc_info.value.code == "POOL_CLOSED"

    def test_connections_are_opened_lazily(self, bare_pool):
        assert bare_pool.get_stats().total == 0
        with bare_pool.connection():
            assert bare_pool.get_stats() == PoolStats(total=1, available=0, in_use=1, max=2)
        assert bare_pool.get_stats() == PoolStats(total=1, available=1, in_use=0, max=2)


class TestAcquireRelease:
    def test_timeout_when_every_connection_is_checked_out(self, bare_pool):
        first = bare_pool.get_connection()
        second = bare_pool.get_connection()
        started = time.monotonic()

        with pytest.raises(ConnectionPoolTimeout) as exc_info:
            bare_pool.get_connection(timeout=0.1)

        assert time.monotonic() - started >= 0.1
        assert exc_info.value.code == "POOL_EXHAUSTED"
        assert exc_info.value.status_code == 503
        assert is_pool_exhaustion(exc_info.value)
        bare_pool.release_connection(first)
        bare_pool.release_connection(second)

    def test_released_connection_is_reused(self, bare_pool):
        conn = bare_pool.get_connection()
        bare_pool.release_connection(conn)

        again = bare_pool.get_connection()
        assert again is conn
        bare_pool.release_connection(again)

    def test_double_release_is_a_no_op(self, bare_pool):
        conn = bare_pool.get_connection()
        bare_pool.release_connection(conn)
        bare_pool.release_connection(conn)

        assert bare_pool.get_stats() == PoolStats(total=1, available=1, in_use=0, max=2)

    def test_waiter_gets_connection_released_by_another_thread(self, bare_pool):
        held = [bare_pool.get_connection(), bare_pool.get_connection()]

        def _release_later():
            time.sleep(0.05)
            bare_pool.release_connection(held[0])

        releaser = threading.Thread(target=_release_later)
        releaser.start()
        conn = bare_pool.get_connection(timeout=1.0)
        releaser.join()

        assert conn is held[0]
        bare_pool.release_connection(conn)
        bare_pool.release_connection(held[1])

    def test_in_use_never_exceeds_max_under_contention(self, bare_pool):
        peak = 0
        errors = []
        lock = threading.Lock()

        def _worker():
            nonlocal peak
            try:
                with bare_pool.connection(timeout=5.0) as conn:
                    with lock:
                        peak = max(peak, bare_pool.get_stats().in_use)
                    conn.exec_driver_sql("SELECT 1")
                    time.sleep(0.02)
            except Exception as exc:  # pragma: no cover - surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert 1 <= peak <= 2
        assert bare_pool.get_stats().in_use == 0

    def test_closed_connection_is_discarded_on_release(self, bare_pool):
        conn = bare_pool.get_connection()
        conn.close()
        bare_pool.release_connection(conn)

        assert bare_pool.get_stats().total == 0
        with bare_pool.connection() as fresh:
            assert fresh.exec_driver_sql("SELECT 1").scalar() == 1


class TestTransactions:
    def test_transaction_commits(self, bare_pool):
        bare_pool.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        with bare_pool.transaction() as session:
            session.execute(text("INSERT INTO notes (body) VALUES ('kept')"))

        assert bare_pool.execute("SELECT body FROM notes") == [{"body": "kept"}]

    def test_transaction_rolls_back_and_reraises(self, bare_pool):
        bare_pool.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")

        with pytest.raises(ValueError, match="boom"):
            with bare_pool.transaction() as session:
                session.execute(text("INSERT INTO notes (body) VALUES ('lost')"))
                raise ValueError("boom")

        assert bare_pool.execute("SELECT COUNT(*) AS n FROM notes") == [{"n": 0}]
        assert bare_pool.get_stats().in_use == 0

    def test_write_transactions_begin_immediate(self, bare_pool, sql_recorder_for):
        with sql_recorder_for(bare_pool) as recorder:
            with bare_pool.transaction(immediate=True) as session:
                session.execute(text("SELECT 1"))
            with bare_pool.session() as session:
                session.execute(text("SELECT 1"))

        begins = [s for s in recorder.statements if s.startswith("BEGIN")]
        assert begins == ["BEGIN IMMEDIATE", "BEGIN"]

    def test_run_in_transaction_returns_callback_result(self, bare_pool):
        result = bare_pool.run_in_transaction(lambda session: session.execute(text("SELECT 41 + 1")).scalar())
        assert result == 42

    def test_execute_returns_rowcount_for_writes(self, bare_pool):
        bare_pool.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        bare_pool.execute("INSERT INTO notes (body) VALUES (:body)", {"body": "a"})
        bare_pool.execute("INSERT INTO notes (body) VALUES (:body)", {"body": "b"})

        assert bare_pool.execute("UPDATE notes SET body = 'c'") == 2


class TestConnectionSettings:
    def test_wal_foreign_keys_and_busy_timeout_are_applied(self, bare_pool):
        with bare_pool.connection() as conn:
            assert conn.exec_driver_sql("PRAGMA journal_mode").scalar().lower() == "wal"
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
            assert conn.exec_driver_sql("PRAGMA busy_timeout").scalar() == 1000

    def test_database_directory_is_created(self, tmp_path, pool_config):
        nested = tmp_path / "data" / "nested" / "bookings.db"
        with ConnectionPool(nested, pool_config) as pool:
            assert pool.health_check()
        assert nested.parent.is_dir()


class TestHealthCheck:
    def test_healthy_pool(self, bare_pool):
        bare_pool.initialize()
        assert bare_pool.health_check() is True
        assert bare_pool.get_stats().in_use == 0

    def test_checked_out_connections_are_not_pinged(self, bare_pool):
        bare_pool.initialize()
        with bare_pool.connection():
            assert bare_pool.health_check() is True
            assert bare_pool.get_stats().in_use == 1

    def test_closed_pool_is_unhealthy(self, bare_pool):
        bare_pool.initialize()
        bare_pool.close()
        assert bare_pool.health_check() is False

    def test_one_broken_idle_connection_fails_the_check_and_is_dropped(self, bare_pool):
        bare_pool.initialize()
        bare_pool._available[0].connection.dbapi_connection.close()

        assert bare_pool.health_check() is False
        assert bare_pool.get_stats() == PoolStats(total=1, available=1, in_use=0, max=2)

        assert bare_pool.health_check() is True
        with bare_pool.connection(), bare_pool.connection():
            assert bare_pool.get_stats().total == 2
