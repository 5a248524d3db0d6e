# backend/studiobook/models/__init__.py
"""
SQLAlchemy models for the studio booking store.

Importing this package registers every table on ``Base.metadata``.
"""

from .addon import Addon, BookingAddon
from .audit_log import AuditLog
from .booking import Booking
from .coupon import Coupon, CouponUsage
from .expense import Expense
from .lead import Lead, LeadInteraction
from .payment import Payment
from .reschedule_history import RescheduleHistory
from .service import Photographer, Service
from .system_setting import SystemSetting, SystemSettingAudit
from .user import User

__all__ = [
    "Addon",
    "AuditLog",
    "Booking",
    "BookingAddon",
    "Coupon",
    "CouponUsage",
    "Expense",
    "Lead",
    "LeadInteraction",
    "Payment",
    "Photographer",
    "RescheduleHistory",
    "Service",
    "SystemSetting",
    "SystemSettingAudit",
    "User",
]
