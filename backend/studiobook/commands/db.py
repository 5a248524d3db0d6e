#!/usr/bin/env python
# backend/studiobook/commands/db.py
"""
Database management commands for the studio booking store.

Usage:
    python -m studiobook.commands.db init      # Create tables, migrate, seed settings
    python -m studiobook.commands.db health    # Ping every pooled connection
    python -m studiobook.commands.db stats     # Pool and booking counts as JSON
"""

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional

from ..core.config import PoolConfig, settings
from ..database.pool import ConnectionPool
from ..database.schema import init_schema
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)


class DatabaseCommand:
    """Database management command handler."""

    def __init__(self, database_path: Optional[str] = None) -> None:
        self.database_path = Path(database_path) if database_path else settings.resolved_database_path()

    def _pool(self) -> ConnectionPool:
        return ConnectionPool(self.database_path, PoolConfig.from_settings())

    def init(self) -> Dict[str, Any]:
        with self._pool() as pool:
            init_schema(pool)
        return {"status": "success", "database": str(self.database_path)}

    def health(self) -> Dict[str, Any]:
        with self._pool() as pool:
            healthy = pool.health_check()
            stats = pool.get_stats().to_dict()
        return {"healthy": healthy, "pool": stats}

    def stats(self) -> Dict[str, Any]:
        with self._pool() as pool:
            bookings = RepositoryFactory.create_booking_repository(pool, persist_audit=False)
            return {
                "database": str(self.database_path),
                "pool": pool.get_stats().to_dict(),
                "bookings": {
                    "total": bookings.count_bookings(),
                    "by_status": bookings.count_by_status(),
                },
            }


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the database command."""
    parser = argparse.ArgumentParser(
        description="Studio booking database management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m studiobook.commands.db init
  python -m studiobook.commands.db --database /tmp/bookings.db health
  python -m studiobook.commands.db stats
        """,
    )
    parser.add_argument("--database", help="SQLite file (default: DATABASE_PATH setting)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("init", help="Create tables, migrate legacy columns, seed settings")
    subparsers.add_parser("health", help="Check that every pooled connection responds")
    subparsers.add_parser("stats", help="Print pool statistics and booking counts")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    cmd = DatabaseCommand(args.database)

    if args.command == "init":
        result = cmd.init()
        print(f"Database ready at {result['database']}")
        return 0

    if args.command == "health":
        result = cmd.health()
        print(json.dumps(result, indent=2))
        if not result["healthy"]:
            logger.error("Database health check failed for %s", cmd.database_path)
            return 1
        return 0

    print(json.dumps(cmd.stats(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
