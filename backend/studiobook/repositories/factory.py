# backend/studiobook/repositories/factory.py
"""
Repository Factory for the studio booking store.

Provides centralized creation of repository instances over one explicitly
constructed connection pool, wiring the persistent audit hook into the
repositories that emit audit events.
"""

from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..database.pool import ConnectionPool
from ..events.audit import AuditHook
from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .audit_repository import AuditRepository
    from .booking_repository import BookingRepository
    from .catalog_repository import CatalogRepository
    from .coupon_repository import CouponRepository
    from .expense_repository import ExpenseRepository
    from .lead_repository import LeadRepository
    from .settings_repository import SettingsRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(pool: ConnectionPool, model: Any) -> BaseRepository:
        return BaseRepository(pool, model)

    @staticmethod
    def create_audit_repository(pool: ConnectionPool) -> "AuditRepository":
        from .audit_repository import AuditRepository

        return AuditRepository(pool)

    @staticmethod
    def create_booking_repository(
        pool: ConnectionPool,
        audit_hooks: Optional[Sequence[AuditHook]] = None,
        persist_audit: bool = True,
    ) -> "BookingRepository":
        """
        Create the booking repository.

        With ``persist_audit`` the audit_log writer is registered ahead of
        any extra hooks.
        """
        from .booking_repository import BookingRepository

        hooks = list(audit_hooks or [])
        if persist_audit:
            hooks.insert(0, RepositoryFactory.create_audit_repository(pool).as_hook())
        return BookingRepository(pool, audit_hooks=hooks)

    @staticmethod
    def create_settings_repository(
        pool: ConnectionPool, persist_audit: bool = True
    ) -> "SettingsRepository":
        from .settings_repository import SettingsRepository

        hooks = [RepositoryFactory.create_audit_repository(pool).as_hook()] if persist_audit else []
        return SettingsRepository(pool, audit_hooks=hooks)

    @staticmethod
    def create_catalog_repository(pool: ConnectionPool) -> "CatalogRepository":
        from .catalog_repository import CatalogRepository

        return CatalogRepository(pool)

    @staticmethod
    def create_coupon_repository(pool: ConnectionPool) -> "CouponRepository":
        from .coupon_repository import CouponRepository

        return CouponRepository(pool)

    @staticmethod
    def create_expense_repository(pool: ConnectionPool) -> "ExpenseRepository":
        from .expense_repository import ExpenseRepository

        return ExpenseRepository(pool)

    @staticmethod
    def create_lead_repository(pool: ConnectionPool) -> "LeadRepository":
        from .lead_repository import LeadRepository

        return LeadRepository(pool)
