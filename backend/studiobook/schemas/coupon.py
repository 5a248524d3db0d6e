"""Coupon validation results."""

from typing import Optional

from pydantic import BaseModel


class CouponInfo(BaseModel):
    id: str
    code: str
    discount_type: str
    discount_value: float
    min_purchase: Optional[float] = None
    max_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    description: Optional[str] = None


class CouponValidationResult(BaseModel):
    valid: bool
    coupon: Optional[CouponInfo] = None
    error: Optional[str] = None
    discount_amount: int = 0

    @classmethod
    def rejected(cls, error: str) -> "CouponValidationResult":
        return cls(valid=False, error=error)
