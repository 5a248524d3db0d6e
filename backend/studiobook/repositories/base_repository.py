# backend/studiobook/repositories/base_repository.py
"""
Base Repository Pattern for the studio booking store.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Unit-of-work helpers over the connection pool
- Translation of driver errors into typed domain exceptions

Repositories own their units of work: every public method acquires a pooled
connection, runs in its own transaction and releases the connection before
returning. Entities come back detached with their columns loaded.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConstraintViolationException,
    DomainException,
    RepositoryException,
    TransactionFailedException,
)
from ..database.pool import ConnectionPool
from ..monitoring.prometheus_metrics import prometheus_metrics

# Type variable for generic model support
T = TypeVar("T")
V = TypeVar("V")

logger = logging.getLogger(__name__)


def chunked(values: Sequence[V], size: int) -> Iterator[List[V]]:
    """Yield consecutive slices of at most ``size`` items."""
    for start in range(0, len(values), size):
        yield list(values[start : start + size])


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class IRepository(ABC, Generic[T]):
    """
    Abstract repository interface defining core data access methods.

    All repositories must implement these methods to ensure consistency
    across the store.
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Returns:
            The entity if found, None otherwise
        """

    @abstractmethod
    def get_all(self, skip: int = 0, limit: int = 100) -> List[T]:
        """Retrieve entities with pagination."""

    @abstractmethod
    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Raises:
            ConstraintViolationException: The engine rejected the row
            RepositoryException: If creation fails otherwise
        """

    @abstractmethod
    def update(self, id: Any, **kwargs: Any) -> Optional[T]:
        """
        Update an existing entity.

        Returns:
            The updated entity if found, None otherwise
        """

    @abstractmethod
    def delete(self, id: Any) -> bool:
        """
        Delete an entity by its primary key.

        Returns:
            True if deleted, False if not found
        """

    @abstractmethod
    def exists(self, **kwargs: Any) -> bool:
        """Check if an entity exists with given criteria."""

    @abstractmethod
    def count(self, **kwargs: Any) -> int:
        """Count entities matching given criteria."""


class BaseRepository(IRepository[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        pool: Connection pool every unit of work is drawn from
        model: SQLAlchemy model class
    """

    def __init__(self, pool: ConnectionPool, model: Type[T]):
        self.pool = pool
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    # ------------------------------------------------------------------
    # units of work
    # ------------------------------------------------------------------
    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """Read-only session; translates driver errors."""
        try:
            with self.pool.session() as session:
                yield session
        except DomainException:
            raise
        except SQLAlchemyError as exc:
            self.logger.error("Read on %s failed: %s", self.model.__name__, exc)
            raise RepositoryException(
                f"Failed to read {self.model.__name__}: {exc}"
            ) from exc

    @contextmanager
    def write_transaction(
        self,
        operation: str,
        error_code: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[Session]:
        """
        Run the block as one write transaction.

        Commits on success. On failure everything is rolled back and the
        error surfaces as ``ConstraintViolationException`` (integrity
        errors) or ``TransactionFailedException`` carrying the cause.
        Domain exceptions raised by the block propagate unchanged.
        ``timeout`` overrides the pool's acquire timeout.
        """
        try:
            with self.pool.transaction(immediate=True, timeout=timeout) as session:
                yield session
        except DomainException:
            prometheus_metrics.record_transaction(operation, "rolled_back")
            raise
        except IntegrityError as exc:
            prometheus_metrics.record_transaction(operation, "rolled_back")
            self.logger.warning("%s rolled back on constraint violation: %s", operation, exc.orig)
            raise ConstraintViolationException(
                f"{operation} violated a database constraint: {exc.orig}",
                cause=exc,
                details={"operation": operation},
            ) from exc
        except Exception as exc:
            prometheus_metrics.record_transaction(operation, "rolled_back")
            self.logger.error("%s rolled back: %s", operation, exc, exc_info=True)
            raise TransactionFailedException(
                f"{operation} failed and was rolled back: {exc}",
                code=error_code,
                cause=exc,
                details={"operation": operation},
            ) from exc
        else:
            prometheus_metrics.record_transaction(operation, "committed")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def get_by_id(self, id: Any) -> Optional[T]:
        with self.read_session() as session:
            return session.get(self.model, id)

    def get_all(self, skip: int = 0, limit: int = 100) -> List[T]:
        """
        Retrieve entities with pagination.

        Default limit of 100 to prevent memory issues.
        """
        with self.read_session() as session:
            stmt = select(self.model).offset(skip).limit(limit)
            return list(session.scalars(stmt).all())

    def create(self, **kwargs: Any) -> T:
        with self.write_transaction(f"create_{self._entity_name}") as session:
            entity = self.model(**kwargs)
            session.add(entity)
            session.flush()
        return entity

    def update(self, id: Any, **kwargs: Any) -> Optional[T]:
        """Only updates provided fields, preserves others."""
        with self.write_transaction(f"update_{self._entity_name}") as session:
            entity = session.get(self.model, id)
            if entity is None:
                return None
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            session.flush()
        return entity

    def delete(self, id: Any) -> bool:
        with self.write_transaction(f"delete_{self._entity_name}") as session:
            entity = session.get(self.model, id)
            if entity is None:
                return False
            session.delete(entity)
            session.flush()
        return True

    def exists(self, **kwargs: Any) -> bool:
        with self.read_session() as session:
            stmt = select(self.model).filter_by(**kwargs).limit(1)
            return session.scalars(stmt).first() is not None

    def count(self, **kwargs: Any) -> int:
        with self.read_session() as session:
            stmt = select(func.count()).select_from(self.model).filter_by(**kwargs)
            return int(session.scalar(stmt) or 0)

    @property
    def _entity_name(self) -> str:
        return str(getattr(self.model, "__tablename__", self.model.__name__.lower()))
