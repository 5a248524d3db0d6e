# backend/studiobook/models/booking.py
"""
Booking model for the studio booking store.

A booking is the aggregate root: payments, add-on lines and reschedule
history hang off it and are removed with it by ``ON DELETE CASCADE``.
Customer, booking-detail and finance fields are flattened into columns the
way the table has always been laid out.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship

from ..core.enums import BookingStatus
from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import StudioTimestamp

_STATUS_VALUES = ", ".join(f"'{value}'" for value in BookingStatus.storable_values())


class Booking(Base):
    """A customer's photo session booking."""

    __tablename__ = "bookings"

    id = Column(Text, primary_key=True, default=generate_ulid)
    created_at = Column(StudioTimestamp, nullable=False, default=studio_now)
    status = Column(Text, nullable=False, default=BookingStatus.ACTIVE.value)

    customer_name = Column(Text, nullable=False)
    customer_whatsapp = Column(Text, nullable=False)
    customer_category = Column(Text, nullable=False)
    customer_service_id = Column(Text, nullable=True)

    booking_date = Column(StudioTimestamp, nullable=False)
    booking_notes = Column(Text, nullable=True)
    booking_location_link = Column(Text, nullable=True)

    total_price = Column(Integer, nullable=False, default=0)
    service_base_price = Column(Integer, nullable=True)
    base_discount = Column(Integer, nullable=True)
    addons_total = Column(Integer, nullable=True)
    coupon_discount = Column(Integer, nullable=True)
    coupon_code = Column(Text, nullable=True)

    photographer_id = Column(Text, ForeignKey("photographers.id"), nullable=True)

    updated_at = Column(StudioTimestamp, nullable=True, default=studio_now, onupdate=studio_now)

    payments = relationship(
        "Payment",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    addon_lines = relationship(
        "BookingAddon",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    reschedule_history = relationship(
        "RescheduleHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    photographer = relationship("Photographer", lazy="raise")

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_bookings_status"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_customer_name", "customer_name"),
        Index("idx_bookings_booking_date", "booking_date"),
        Index("idx_bookings_photographer_id", "photographer_id"),
    )

    def __repr__(self) -> str:
        return f"<Booking {self.id} {self.booking_date} status={self.status}>"
