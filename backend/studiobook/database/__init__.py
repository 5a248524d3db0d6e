"""
Database plumbing: declarative base and the SQLite connection pool.

Schema creation lives in ``studiobook.database.schema`` because it needs the
models, which in turn import ``Base`` from here.
"""

from .base import Base
from .pool import ConnectionPool, PoolStats, create_sqlite_engine

__all__ = ["Base", "ConnectionPool", "PoolStats", "create_sqlite_engine"]
