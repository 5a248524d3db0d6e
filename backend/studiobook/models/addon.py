"""Add-on catalog entries and the add-on lines attached to bookings."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import JSONText, StudioTimestamp


class Addon(Base):
    """
    Optional extra sold alongside a service (extra prints, extra hour).

    ``applicable_categories`` is a JSON list of service categories; an
    empty or missing list means the add-on applies to every category.
    """

    __tablename__ = "addons"

    id = Column(Text, primary_key=True, default=generate_ulid)
    name = Column(Text, nullable=False)
    price = Column(Integer, nullable=False)
    applicable_categories = Column(JSONText, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (Index("idx_addons_is_active", "is_active"),)

    def applies_to(self, category: str) -> bool:
        categories = self.applicable_categories or []
        return not categories or category in categories

    def __repr__(self) -> str:
        return f"<Addon {self.id} {self.name} price={self.price}>"


class BookingAddon(Base):
    """An add-on line on a booking with the price snapshotted at booking time."""

    __tablename__ = "booking_addons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Text,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    addon_id = Column(
        Text,
        ForeignKey("addons.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False, default=1, server_default=text("1"))
    price_at_booking = Column(Integer, nullable=False)
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    booking = relationship("Booking", back_populates="addon_lines", lazy="raise")
    addon = relationship("Addon", lazy="raise")

    __table_args__ = (
        UniqueConstraint("booking_id", "addon_id", name="uq_booking_addons_booking_addon"),
        CheckConstraint("quantity >= 1", name="ck_booking_addons_quantity"),
        Index("idx_booking_addons_booking_id", "booking_id"),
        Index("idx_booking_addons_addon_id", "addon_id"),
    )
