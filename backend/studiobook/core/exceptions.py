# backend/studiobook/core/exceptions.py
"""
Domain-specific exceptions for the studio booking store.

Every exception carries a stable ``code`` so callers (the HTTP layer,
CLI, background jobs) can map failures without parsing messages.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BookingConflictException(ConflictException):
    """Raised when a booking slot is already taken."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The selected date and time is already booked",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class RepositoryException(DomainException):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as query failures
    or an unusable connection.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "REPOSITORY_ERROR", details=details)


class ConnectionPoolTimeout(RepositoryException):
    """Raised when no pooled connection frees up within the acquire timeout."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, timeout: float, max_connections: int) -> None:
        super().__init__(
            f"Connection pool timeout: no connections available after {timeout:.1f}s",
            code="POOL_EXHAUSTED",
            details={"timeout_seconds": timeout, "max_connections": max_connections},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "2"}
        return exc


class TransactionFailedException(RepositoryException):
    """Raised when a multi-statement write was rolled back."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        if cause is not None:
            merged.setdefault("cause", str(cause))
        super().__init__(message, code=code or "TRANSACTION_FAILED", details=merged)
        if cause is not None:
            self.__cause__ = cause


class ConstraintViolationException(TransactionFailedException):
    """Raised when the engine rejects a write (unique, foreign key, CHECK)."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="CONSTRAINT_VIOLATION", cause=cause, details=details)


def is_pool_exhaustion(exc: BaseException) -> bool:
    """
    Check if an exception indicates connection pool exhaustion.

    Walks the cause chain so wrapped pool timeouts are recognised too.
    """
    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, ConnectionPoolTimeout):
            return True
        current = current.__cause__
    return False
