"""Discount coupons and their redemption history."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    text,
)

from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..database.base import Base
from .types import StudioTimestamp


class Coupon(Base):
    """
    A discount code.

    ``discount_value`` is a percentage for percentage coupons and a currency
    amount for fixed coupons. ``code`` is stored upper-cased.
    """

    __tablename__ = "coupons"

    id = Column(Text, primary_key=True, default=generate_ulid)
    code = Column(Text, nullable=False, unique=True)
    discount_type = Column(Text, nullable=False)
    discount_value = Column(Float, nullable=False)
    min_purchase = Column(Float, nullable=True, default=0, server_default=text("0"))
    max_discount = Column(Float, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    valid_from = Column(StudioTimestamp, nullable=True)
    valid_until = Column(StudioTimestamp, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    description = Column(Text, nullable=True)
    created_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')", name="ck_coupons_discount_type"
        ),
        Index("idx_coupons_code", "code"),
        Index("idx_coupons_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Coupon {self.code} {self.discount_type}={self.discount_value}>"


class CouponUsage(Base):
    __tablename__ = "coupon_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_id = Column(Text, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(Text, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    customer_name = Column(Text, nullable=False)
    customer_whatsapp = Column(Text, nullable=False)
    discount_amount = Column(Float, nullable=False)
    order_total = Column(Float, nullable=False)
    used_at = Column(StudioTimestamp, nullable=True, default=studio_now)

    __table_args__ = (
        Index("idx_coupon_usage_coupon_id", "coupon_id"),
        Index("idx_coupon_usage_booking_id", "booking_id"),
    )
