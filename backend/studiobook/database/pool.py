"""
Bounded connection pool over an embedded SQLite database.

SQLAlchemy's own pooling is disabled (``NullPool``); this pool owns a fixed
upper bound of long-lived ``Connection`` objects and hands them out one per
in-flight operation. Every connection is configured on connect for WAL
journaling, enforced foreign keys and a busy timeout, and runs the driver in
autocommit mode so SQLAlchemy emits the ``BEGIN`` itself. That lets writers
ask for ``BEGIN IMMEDIATE`` and take the write lock before their first read.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, TypeVar, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.base import Executable

from ..core.config import PoolConfig
from ..core.exceptions import ConnectionPoolTimeout, RepositoryException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BEGIN_MODE_OPTION = "studiobook_begin_mode"
BEGIN_DEFERRED = "DEFERRED"
BEGIN_IMMEDIATE = "IMMEDIATE"


@dataclass(frozen=True)
class PoolStats:
    total: int
    available: int
    in_use: int
    max: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "available": self.available,
            "in_use": self.in_use,
            "max": self.max,
        }


def _add_sqlite_events(engine: Engine, busy_timeout_ms: int) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        # Disable pysqlite's implicit transaction handling; BEGIN is emitted below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        finally:
            cursor.close()
        logger.debug("SQLite connection established")

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        mode = conn.get_execution_options().get(_BEGIN_MODE_OPTION, BEGIN_DEFERRED)
        if mode == BEGIN_IMMEDIATE:
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_sqlite_engine(database_path: Union[str, Path], busy_timeout_ms: int = 5000) -> Engine:
    """Create an engine for ``database_path`` with pooling left to ``ConnectionPool``."""
    path = Path(database_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{path}",
        poolclass=NullPool,
        connect_args={
            "check_same_thread": False,
            "timeout": max(busy_timeout_ms, 0) / 1000.0,
        },
    )
    _add_sqlite_events(engine, busy_timeout_ms)
    return engine


class ConnectionPool:
    """
    Fixed-capacity pool of SQLite connections.

    Acquire waits by polling until a connection frees up or the acquire
    timeout elapses, then raises ``ConnectionPoolTimeout``. Bookkeeping is
    guarded by a single lock; connecting and waiting happen outside it.
    """

    def __init__(self, database_path: Union[str, Path], config: Optional[PoolConfig] = None):
        self.database_path = Path(database_path)
        self.config = config or PoolConfig()
        self.engine = create_sqlite_engine(self.database_path, self.config.busy_timeout_ms)
        self._lock = threading.Lock()
        self._available: List[Connection] = []
        self._in_use: set[int] = set()
        self._connections: Dict[int, Connection] = {}
        self._pending = 0
        self._initialized = False
        self._closed = False

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Eagerly open ``max_connections`` connections. Safe to call repeatedly."""
        with self._lock:
            if self._initialized:
                return
            self._ensure_open()
            missing = self.config.max_connections - self._total_locked()
            self._pending += max(missing, 0)
        opened: List[Connection] = []
        try:
            for _ in range(max(missing, 0)):
                opened.append(self._open_connection())
        finally:
            with self._lock:
                self._pending -= max(missing, 0)
                for conn in opened:
                    self._connections[id(conn)] = conn
                    self._available.append(conn)
                self._initialized = True
        logger.info(
            "Connection pool initialised for %s with %d connections",
            self.database_path,
            len(opened),
        )

    def close(self) -> None:
        """Close every connection and dispose the engine. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            connections = list(self._connections.values())
            self._connections.clear()
            self._available.clear()
            self._in_use.clear()
        for conn in connections:
            try:
                conn.close()
            except Exception as exc:
                logger.warning("Error closing pooled connection: %s", exc)
        self.engine.dispose()
        prometheus_metrics.set_connections_in_use(0)
        logger.info("Connection pool for %s closed", self.database_path)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # acquire / release
    # ------------------------------------------------------------------
    def get_connection(self, timeout: Optional[float] = None) -> Connection:
        """
        Check out a connection.

        Args:
            timeout: Seconds to wait for a free connection; defaults to the
                pool's configured acquire timeout.

        Raises:
            ConnectionPoolTimeout: No connection freed up in time.
            RepositoryException: The pool has been closed (code ``POOL_CLOSED``).
        """
        wait = self.config.timeout if timeout is None else timeout
        started = time.monotonic()
        deadline = started + wait
        while True:
            should_open = False
            with self._lock:
                self._ensure_open()
                if self._available:
                    conn = self._available.pop()
                    self._in_use.add(id(conn))
                    in_use = len(self._in_use)
                    break
                if self._total_locked() < self.config.max_connections:
                    self._pending += 1
                    should_open = True

            if should_open:
                conn = self._open_pending()
                with self._lock:
                    self._in_use.add(id(conn))
                    in_use = len(self._in_use)
                break

            if time.monotonic() >= deadline:
                prometheus_metrics.inc_pool_exhausted()
                logger.error(
                    "Connection pool exhausted after %.1fs",
                    wait,
                    extra={"max_connections": self.config.max_connections},
                )
                raise ConnectionPoolTimeout(wait, self.config.max_connections)
            time.sleep(min(self.config.poll_interval, max(deadline - time.monotonic(), 0.0)))

        prometheus_metrics.observe_pool_acquire(time.monotonic() - started)
        prometheus_metrics.set_connections_in_use(in_use)
        logger.debug("Connection checked out (%d in use)", in_use)
        return conn

    def release_connection(self, conn: Connection) -> None:
        """
        Return a checked-out connection to the pool.

        Releasing a connection that is not checked out is a no-op. Closed or
        invalidated connections are dropped so a later acquire replaces them.
        """
        with self._lock:
            key = id(conn)
            if key not in self._in_use:
                return
            self._in_use.discard(key)
            broken = conn.closed or conn.invalidated
            if not broken and conn.in_transaction():
                try:
                    conn.rollback()
                except Exception as exc:
                    logger.warning("Discarding connection after failed rollback: %s", exc)
                    broken = True
            if broken or self._closed:
                self._connections.pop(key, None)
            else:
                self._available.append(conn)
            in_use = len(self._in_use)
        if broken:
            logger.warning("Discarded unusable pooled connection")
            try:
                conn.close()
            except Exception:
                logger.debug("Ignoring close error on discarded connection", exc_info=True)
        prometheus_metrics.set_connections_in_use(in_use)
        logger.debug("Connection returned to pool (%d in use)", in_use)

    @contextmanager
    def connection(self, timeout: Optional[float] = None) -> Generator[Connection, None, None]:
        """Check out a connection for the duration of the block."""
        conn = self.get_connection(timeout)
        try:
            yield conn
        finally:
            self.release_connection(conn)

    # ------------------------------------------------------------------
    # units of work
    # ------------------------------------------------------------------
    @contextmanager
    def transaction(
        self, immediate: bool = True, timeout: Optional[float] = None
    ) -> Generator[Session, None, None]:
        """
        Run the block as one transaction on one pooled connection.

        Commits when the block completes, rolls back and re-raises on any
        exception, and always returns the connection to the pool.
        """
        conn = self.get_connection(timeout)
        session: Optional[Session] = None
        try:
            conn.execution_options(
                **{_BEGIN_MODE_OPTION: BEGIN_IMMEDIATE if immediate else BEGIN_DEFERRED}
            )
            session = Session(bind=conn, autoflush=False, expire_on_commit=False)
            try:
                yield session
                session.commit()
            except BaseException:
                session.rollback()
                raise
        finally:
            if session is not None:
                session.close()
            self.release_connection(conn)

    @contextmanager
    def session(self, timeout: Optional[float] = None) -> Generator[Session, None, None]:
        """
        Read-only unit of work; the transaction is always rolled back.

        ``close()`` detaches loaded objects before ending the transaction, so
        they keep their state; an explicit ``rollback()`` would expire them.
        """
        conn = self.get_connection(timeout)
        session: Optional[Session] = None
        try:
            conn.execution_options(**{_BEGIN_MODE_OPTION: BEGIN_DEFERRED})
            session = Session(bind=conn, autoflush=False, expire_on_commit=False)
            yield session
        finally:
            if session is not None:
                session.close()
            self.release_connection(conn)

    def run_in_transaction(self, callback: Callable[[Session], T], immediate: bool = True) -> T:
        with self.transaction(immediate=immediate) as session:
            return callback(session)

    def execute(
        self,
        statement: Union[str, Executable],
        params: Optional[Mapping[str, Any]] = None,
    ) -> Union[List[Dict[str, Any]], int]:
        """
        Run a single statement in its own transaction.

        Returns row mappings for statements that produce rows, otherwise
        the affected row count.
        """
        stmt = text(statement) if isinstance(statement, str) else statement
        with self.connection() as conn:
            conn.execution_options(**{_BEGIN_MODE_OPTION: BEGIN_DEFERRED})
            with conn.begin():
                result = conn.execute(stmt, dict(params or {}))
                if result.returns_rows:
                    return [dict(row) for row in result.mappings()]
                return int(result.rowcount)

    # ------------------------------------------------------------------
    # introspection
    # ------------------------------------------------------------------
    def health_check(self) -> bool:
        """
        Verify the pool's connections are usable.

        Idle connections are borrowed and pinged with ``SELECT 1``; checked
        out ones only need to still be open.
        """
        with self._lock:
            if self._closed:
                return False
            busy = [self._connections[key] for key in self._in_use if key in self._connections]
            idle = list(self._available)
            self._available.clear()
            for conn in idle:
                self._in_use.add(id(conn))

        healthy = True
        try:
            for conn in busy:
                if conn.closed or conn.invalidated:
                    healthy = False
            for conn in idle:
                try:
                    conn.execution_options(**{_BEGIN_MODE_OPTION: BEGIN_DEFERRED})
                    with conn.begin():
                        if conn.exec_driver_sql("SELECT 1").scalar() != 1:
                            healthy = False
                except Exception as exc:
                    logger.warning("Pooled connection failed health check: %s", exc)
                    healthy = False
        finally:
            for conn in idle:
                self.release_connection(conn)
        return healthy

    def get_stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                total=len(self._connections),
                available=len(self._available),
                in_use=len(self._in_use),
                max=self.config.max_connections,
            )

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _ensure_open(self) -> None:
        if self._closed:
            raise RepositoryException("Connection pool is closed", code="POOL_CLOSED")

    def _total_locked(self) -> int:
        return len(self._connections) + self._pending

    def _open_connection(self) -> Connection:
        return self.engine.connect()

    def _open_pending(self) -> Connection:
        try:
            conn = self._open_connection()
        except Exception:
            with self._lock:
                self._pending -= 1
            raise
        with self._lock:
            self._pending -= 1
            self._connections[id(conn)] = conn
        logger.debug("Opened new pooled connection")
        return conn

    def __enter__(self) -> "ConnectionPool":
        self.initialize()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
