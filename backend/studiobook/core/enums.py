# backend/studiobook/core/enums.py
"""
Core enums for the studio booking store.

Enum values are the exact strings persisted in the database, so they must
not be renamed without a data migration.
"""

from enum import Enum
from typing import Any


class BookingStatus(str, Enum):
    """
    Booking lifecycle statuses.

    UNKNOWN is never written; it marks legacy rows whose stored status is
    not one of the canonical values.
    """

    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"
    UNKNOWN = "Unknown"

    @classmethod
    def normalize(cls, value: Any) -> "BookingStatus":
        """Map a raw stored value onto a member, falling back to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        text = str(value).strip().lower()
        if text == "canceled":
            return cls.CANCELLED
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNKNOWN

    @classmethod
    def storable_values(cls) -> list[str]:
        return [m.value for m in cls if m is not cls.UNKNOWN]

    def storable(self) -> "BookingStatus":
        """Status to persist; legacy UNKNOWN is written back as ACTIVE."""
        return BookingStatus.ACTIVE if self is BookingStatus.UNKNOWN else self

    @property
    def blocks_slot(self) -> bool:
        return self in SLOT_BLOCKING_STATUSES


SLOT_BLOCKING_STATUSES = (BookingStatus.ACTIVE, BookingStatus.RESCHEDULED)


class StorageBackend(str, Enum):
    """Where a payment proof file lives."""

    LOCAL = "local"
    B2 = "b2"


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ExpenseCategory(str, Enum):
    OPERATIONAL = "operational"
    EQUIPMENT = "equipment"
    MARKETING = "marketing"
    SALARY = "salary"
    OTHER = "other"


class LeadStatus(str, Enum):
    NEW = "New"
    CONTACTED = "Contacted"
    FOLLOW_UP = "Follow Up"
    WON = "Won"
    LOST = "Lost"
    CONVERTED = "Converted"


class LeadSource(str, Enum):
    META_ADS = "Meta Ads"
    ORGANIC = "Organic"
    REFERRAL = "Referral"
    INSTAGRAM = "Instagram"
    WHATSAPP = "WhatsApp"
    PHONE_CALL = "Phone Call"
    WEBSITE_FORM = "Website Form"
    OTHER = "Other"
