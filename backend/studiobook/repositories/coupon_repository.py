"""Coupon repository: lookup, validation and redemption bookkeeping."""

from datetime import datetime
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select, update

from ..core.coercion import safe_float, safe_int
from ..core.enums import DiscountType
from ..core.timezone_utils import studio_now
from ..database.pool import ConnectionPool
from ..models.coupon import Coupon, CouponUsage
from ..schemas.coupon import CouponInfo, CouponValidationResult
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_coupons = Coupon.__table__
_usage = CouponUsage.__table__


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_discount(coupon: Coupon, total_amount: int) -> int:
    """
    Discount a coupon grants on ``total_amount``.

    Percentage discounts are capped at ``max_discount`` when set; fixed
    discounts never exceed the total.
    """
    value = safe_float(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = total_amount * value / 100
        if coupon.max_discount and discount > coupon.max_discount:
            discount = float(coupon.max_discount)
    else:
        discount = min(value, float(total_amount))
    return max(round_half_up(discount), 0)


class CouponRepository(BaseRepository[Coupon]):
    def __init__(self, pool: ConnectionPool):
        super().__init__(pool, Coupon)

    def get_by_code(self, code: str, active_only: bool = True) -> Optional[Coupon]:
        stmt = select(Coupon).where(func.upper(Coupon.code) == code.strip().upper())
        if active_only:
            stmt = stmt.where(Coupon.is_active.is_(True))
        with self.read_session() as session:
            return session.scalars(stmt.limit(1)).first()

    def create_coupon(self, **kwargs: Any) -> Coupon:
        if "code" in kwargs and kwargs["code"]:
            kwargs["code"] = str(kwargs["code"]).strip().upper()
        return self.create(**kwargs)

    def validate_coupon(
        self, code: str, total_amount: int, now: Optional[datetime] = None
    ) -> CouponValidationResult:
        """
        Check a coupon code against ``total_amount``.

        Rejections come back as ``valid=False`` with a reason; nothing is
        raised for an unusable code.
        """
        if not code or not code.strip():
            return CouponValidationResult.rejected("Coupon code is required")
        coupon = self.get_by_code(code)
        if coupon is None:
            return CouponValidationResult.rejected("Invalid coupon code")

        current = now or studio_now()
        if coupon.valid_from and coupon.valid_from > current:
            return CouponValidationResult.rejected("Coupon is not valid yet")
        if coupon.valid_until and coupon.valid_until < current:
            return CouponValidationResult.rejected("Coupon has expired")
        if coupon.usage_limit and safe_int(coupon.usage_count) >= coupon.usage_limit:
            return CouponValidationResult.rejected("Coupon usage limit reached")
        if coupon.min_purchase and total_amount < coupon.min_purchase:
            return CouponValidationResult.rejected(
                f"Minimum purchase is {int(coupon.min_purchase)}"
            )

        return CouponValidationResult(
            valid=True,
            coupon=CouponInfo(
                id=coupon.id,
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=safe_float(coupon.discount_value),
                min_purchase=coupon.min_purchase,
                max_discount=coupon.max_discount,
                usage_limit=coupon.usage_limit,
                usage_count=safe_int(coupon.usage_count),
                description=coupon.description,
            ),
            discount_amount=calculate_discount(coupon, total_amount),
        )

    def increment_usage(self, code: str) -> bool:
        with self.write_transaction("increment_coupon_usage") as session:
            result = session.execute(
                update(_coupons)
                .where(func.upper(_coupons.c.code) == code.strip().upper())
                .values(usage_count=_coupons.c.usage_count + 1)
            )
            return result.rowcount > 0

    def record_usage(
        self,
        coupon_id: str,
        booking_id: str,
        customer_name: str,
        customer_whatsapp: str,
        discount_amount: float,
        order_total: float,
    ) -> int:
        with self.write_transaction("record_coupon_usage") as session:
            result = session.execute(
                insert(_usage).values(
                    coupon_id=coupon_id,
                    booking_id=booking_id,
                    customer_name=customer_name,
                    customer_whatsapp=customer_whatsapp,
                    discount_amount=discount_amount,
                    order_total=order_total,
                    used_at=studio_now(),
                )
            )
            return int(result.inserted_primary_key[0])

    def get_usage_history(self, coupon_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(_usage)
            .where(_usage.c.coupon_id == coupon_id)
            .order_by(_usage.c.used_at.desc(), _usage.c.id.desc())
        )
        with self.read_session() as session:
            return [dict(row._mapping) for row in session.execute(stmt)]
