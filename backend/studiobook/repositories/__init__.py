# backend/studiobook/repositories/__init__.py
"""
Repository Pattern Implementation for the studio booking store.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- BookingRepository: Booking aggregates, batched hydration, slot checks
- SettingsRepository: Business settings with per-key audit rows
- CatalogRepository: Services, add-ons and photographers
- CouponRepository: Coupon validation and redemption history
- ExpenseRepository: Expenses and per-category totals
- LeadRepository: CRM leads and their interactions
- AuditRepository: audit_log persistence, also usable as an audit hook

Usage:
    from studiobook.database import ConnectionPool
    from studiobook.repositories import RepositoryFactory

    pool = ConnectionPool("data/bookings.db")
    bookings = RepositoryFactory.create_booking_repository(pool)
    upcoming = bookings.read_data(status="Active", limit=20)
"""

from .audit_repository import AuditRepository
from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .catalog_repository import CatalogRepository
from .coupon_repository import CouponRepository
from .expense_repository import ExpenseRepository
from .factory import RepositoryFactory
from .lead_repository import LeadRepository
from .settings_repository import SettingsRepository

__all__ = [
    "AuditRepository",
    "BaseRepository",
    "BookingRepository",
    "CatalogRepository",
    "CouponRepository",
    "ExpenseRepository",
    "IRepository",
    "LeadRepository",
    "RepositoryFactory",
    "SettingsRepository",
]
